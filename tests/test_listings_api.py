import pytest
from fastapi.testclient import TestClient

from app.models.user import UserRole

VEHICLE = {
    "brand": "Renault",
    "model": "Clio",
    "year": 2020,
    "registration_number": "220 TU 1234",
    "vehicle_type": "car",
    "mileage": 35000,
}


@pytest.fixture
def owner_headers(make_user, login):
    make_user("seller")
    return login("seller")


@pytest.fixture
def expert_headers(make_user, login):
    make_user("inspector", UserRole.EXPERT)
    return login("inspector")


@pytest.fixture
def vehicle_id(client: TestClient, owner_headers):
    response = client.post("/vehicles", json=VEHICLE, headers=owner_headers)
    assert response.status_code == 201
    return response.json()["id"]


def create_listing(client, headers, vehicle_id, **overrides):
    payload = {
        "listing_type": "SALE",
        "title": "Renault Clio, first owner",
        "price": 35000,
        "vehicle_id": vehicle_id,
        "location": "Sfax",
    }
    payload.update(overrides)
    return client.post("/listings", json=payload, headers=headers)


def pending_review_id(client, expert_headers, listing_id):
    queue = client.get("/expertise/pending", headers=expert_headers).json()
    return next(item["id"] for item in queue if item["listing_id"] == listing_id)


def test_vehicles_are_listed_per_owner(client, owner_headers, vehicle_id, make_user, login):
    mine = client.get("/vehicles", headers=owner_headers).json()
    assert [vehicle["id"] for vehicle in mine] == [vehicle_id]
    make_user("neighbour")
    assert client.get("/vehicles", headers=login("neighbour")).json() == []


def test_create_listing_variants(client, owner_headers, vehicle_id):
    sale = create_listing(client, owner_headers, vehicle_id)
    assert sale.status_code == 201
    assert sale.json()["status"] == "DRAFT"
    assert sale.json()["details"]["has_clear_title"] is True

    rent = create_listing(
        client,
        owner_headers,
        vehicle_id,
        listing_type="RENT",
        details={"security_deposit": 300, "delivery_available": True},
    )
    assert rent.status_code == 201
    assert rent.json()["details"]["security_deposit"] == 300

    missing_details = create_listing(client, owner_headers, vehicle_id, listing_type="RENT")
    assert missing_details.status_code == 422
    unknown_type = create_listing(client, owner_headers, vehicle_id, listing_type="LEASE")
    assert unknown_type.status_code == 422


def test_listing_on_foreign_vehicle_is_forbidden(client, vehicle_id, make_user, login):
    make_user("intruder")
    response = create_listing(client, login("intruder"), vehicle_id)
    assert response.status_code == 403


def test_update_and_invalid_details(client, owner_headers, vehicle_id):
    listing_id = create_listing(client, owner_headers, vehicle_id).json()["id"]

    updated = client.patch(
        f"/listings/{listing_id}",
        json={"price": 33000, "details": {"trade_in_accepted": True}},
        headers=owner_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["price"] == 33000
    assert updated.json()["details"]["trade_in_accepted"] is True
    assert updated.json()["version"] == 2

    invalid = client.patch(
        f"/listings/{listing_id}",
        json={"details": {"weekly_rate": 10}},
        headers=owner_headers,
    )
    assert invalid.status_code == 422


def test_review_cycle_over_http(client, owner_headers, expert_headers, vehicle_id, outbox):
    listing_id = create_listing(client, owner_headers, vehicle_id).json()["id"]

    submitted = client.post(f"/listings/{listing_id}/submit", headers=owner_headers)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "PENDING_REVIEW"
    assert client.post(f"/listings/{listing_id}/submit", headers=owner_headers).status_code == 409

    review_id = pending_review_id(client, expert_headers, listing_id)
    assert client.post(f"/expertise/{review_id}/approve", headers=owner_headers).status_code == 403

    report = client.patch(
        f"/expertise/{review_id}",
        json={"condition_score": 91, "technical_report": "No rust"},
        headers=expert_headers,
    )
    assert report.status_code == 200
    assert client.patch(
        f"/expertise/{review_id}", json={"condition_score": 101}, headers=expert_headers
    ).status_code == 422

    document = client.put(
        f"/expertise/{review_id}/document",
        json={"document_url": "https://files.example.com/clio.pdf"},
        headers=expert_headers,
    )
    assert document.json()["document_url"] == "https://files.example.com/clio.pdf"

    approved = client.post(f"/expertise/{review_id}/approve", headers=expert_headers)
    assert approved.status_code == 200
    assert approved.json()["decision"] == "APPROVED"
    assert "91/100" in outbox.sent_to("seller@example.com")[-1].html_body

    again = client.post(f"/expertise/{review_id}/reject", json={"reason": "late"}, headers=expert_headers)
    assert again.status_code == 409

    detail = client.get(f"/listings/{listing_id}")
    assert detail.status_code == 200
    assert detail.json()["status"] == "PUBLISHED"
    assert detail.json()["expertise"]["condition_score"] == 91
    assert detail.json()["expiration_date"] is not None


def test_reject_and_resubmit_over_http(client, owner_headers, expert_headers, vehicle_id):
    listing_id = create_listing(client, owner_headers, vehicle_id).json()["id"]
    client.post(f"/listings/{listing_id}/submit", headers=owner_headers)
    review_id = pending_review_id(client, expert_headers, listing_id)

    rejected = client.post(
        f"/expertise/{review_id}/reject",
        json={"reason": "Missing photos", "feedback": "Add interior shots"},
        headers=expert_headers,
    )
    assert rejected.status_code == 200
    assert rejected.json()["rejection_feedback"] == "Add interior shots"

    fixed = client.patch(f"/listings/{listing_id}", json={"title": "Clio with photos"}, headers=owner_headers)
    assert fixed.status_code == 200
    resubmitted = client.post(f"/listings/{listing_id}/submit", headers=owner_headers)
    assert resubmitted.status_code == 200
    assert resubmitted.json()["expertise"]["decision"] == "PENDING"


def test_owner_only_operations(client, owner_headers, vehicle_id, make_user, login):
    listing_id = create_listing(client, owner_headers, vehicle_id).json()["id"]
    make_user("meddler")
    meddler = login("meddler")

    assert client.patch(f"/listings/{listing_id}", json={"price": 1}, headers=meddler).status_code == 403
    assert client.post(f"/listings/{listing_id}/submit", headers=meddler).status_code == 403
    assert client.post(f"/listings/{listing_id}/archive", headers=meddler).status_code == 403
    assert client.delete(f"/listings/{listing_id}", headers=meddler).status_code == 403
    assert client.get("/listings/mine", headers=meddler).json() == []


def test_archive_and_delete(client, owner_headers, vehicle_id):
    first = create_listing(client, owner_headers, vehicle_id).json()["id"]
    second = create_listing(client, owner_headers, vehicle_id).json()["id"]

    archived = client.post(f"/listings/{first}/archive", headers=owner_headers)
    assert archived.json()["status"] == "ARCHIVED"
    assert client.post(f"/listings/{first}/archive", headers=owner_headers).status_code == 409

    assert client.delete(f"/listings/{second}", headers=owner_headers).status_code == 204
    assert client.get(f"/listings/{second}").status_code == 404
    assert [item["id"] for item in client.get("/listings/mine", headers=owner_headers).json()] == [first]


def test_public_search_only_shows_published(client, owner_headers, expert_headers, vehicle_id):
    draft_id = create_listing(client, owner_headers, vehicle_id, title="Still a draft").json()["id"]
    published_ids = []
    for price in (20000, 30000, 40000):
        listing_id = create_listing(client, owner_headers, vehicle_id, price=price).json()["id"]
        client.post(f"/listings/{listing_id}/submit", headers=owner_headers)
        client.post(
            f"/expertise/{pending_review_id(client, expert_headers, listing_id)}/approve",
            headers=expert_headers,
        )
        published_ids.append(listing_id)

    page = client.get("/listings", params={"page_size": 2}).json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert page["has_next"] is True
    assert page["has_previous"] is False
    assert len(page["items"]) == 2
    assert draft_id not in [item["id"] for item in page["items"]]

    filtered = client.get("/listings", params={"min_price": 25000, "max_price": 35000}).json()
    assert [item["price"] for item in filtered["items"]] == [30000]
    assert client.get("/listings", params={"listing_type": "RENT"}).json()["total"] == 0
    assert client.get("/listings", params={"page": 0}).status_code == 422


def test_detail_view_increments_counter(client, owner_headers, vehicle_id):
    listing_id = create_listing(client, owner_headers, vehicle_id).json()["id"]
    client.get(f"/listings/{listing_id}")
    assert client.get(f"/listings/{listing_id}").json()["view_count"] == 2


def test_expert_routes_require_expert_role(client, owner_headers):
    assert client.get("/expertise/pending", headers=owner_headers).status_code == 403
