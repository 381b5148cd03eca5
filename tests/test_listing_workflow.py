from datetime import timedelta

import pytest

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from app.models.base import utc_now
from app.models.expertise import Expertise, ExpertiseDecision
from app.models.listing import Listing, ListingStatus, ListingType
from app.models.user import UserRole
from app.repositories.listing_repository import ListingRepository
from app.repositories.vehicle_repository import VehicleRepository
from app.schemas.expertise import ExpertiseReportUpdate
from app.schemas.listings import ListingUpdate, RentDetails, RentListingCreate, SaleListingCreate
from app.services.listings import TRANSITIONS, sources_for


def make_vehicle(db, owner):
    vehicle = VehicleRepository().create(
        db,
        owner.id,
        brand="Peugeot",
        model="208",
        year=2019,
        registration_number="123 TU 4567",
        vehicle_type="car",
    )
    db.commit()
    return vehicle


def sale(vehicle_id, **overrides):
    fields = dict(
        listing_type="SALE",
        title="Peugeot 208 in great shape",
        price=42000,
        vehicle_id=vehicle_id,
        location="Tunis",
    )
    fields.update(overrides)
    return SaleListingCreate(**fields)


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def expert(make_user):
    return make_user("expert", UserRole.EXPERT)


@pytest.fixture
def draft(db, workflow, owner):
    vehicle = make_vehicle(db, owner)
    return workflow.create(db, owner.id, sale(vehicle.id))


@pytest.fixture
def pending(db, workflow, owner, draft):
    return workflow.submit_for_review(db, draft.id, owner.id)


def review_of(db, listing):
    return db.query(Expertise).filter(Expertise.listing_id == listing.id).one()


def test_transition_table_is_closed_and_archived_is_terminal():
    assert set(TRANSITIONS) == set(ListingStatus)
    assert TRANSITIONS[ListingStatus.ARCHIVED] == frozenset()
    assert sources_for(ListingStatus.PENDING_REVIEW) == {ListingStatus.DRAFT, ListingStatus.REJECTED}
    assert sources_for(ListingStatus.PUBLISHED) == {ListingStatus.PENDING_REVIEW}
    assert ListingStatus.ARCHIVED not in sources_for(ListingStatus.ARCHIVED)
    assert sources_for(ListingStatus.DRAFT) == frozenset()


def test_create_starts_as_draft_with_variant_defaults(draft, owner):
    assert draft.status == ListingStatus.DRAFT
    assert draft.listing_type == ListingType.SALE
    assert draft.owner_id == owner.id
    assert draft.version == 1
    assert draft.view_count == 0
    assert draft.details["has_clear_title"] is True
    assert draft.expertise is None


def test_create_rent_listing_keeps_rent_details(db, workflow, owner):
    vehicle = make_vehicle(db, owner)
    listing = workflow.create(
        db,
        owner.id,
        RentListingCreate(
            listing_type="RENT",
            title="Weekend rental",
            price=120,
            vehicle_id=vehicle.id,
            location="Sousse",
            details=RentDetails(security_deposit=500, weekly_rate=700),
        ),
    )
    assert listing.listing_type == ListingType.RENT
    assert listing.details["security_deposit"] == 500
    assert listing.details["minimum_rental_period"] == "1 day"


def test_create_requires_an_owned_existing_vehicle(db, workflow, owner, make_user):
    stranger = make_user("stranger")
    vehicle = make_vehicle(db, owner)
    with pytest.raises(ForbiddenError):
        workflow.create(db, stranger.id, sale(vehicle.id))
    with pytest.raises(NotFoundError):
        workflow.create(db, owner.id, sale("no-such-vehicle"))


def test_submit_creates_pending_review(db, pending):
    assert pending.status == ListingStatus.PENDING_REVIEW
    assert pending.version == 2
    review = review_of(db, pending)
    assert review.decision == ExpertiseDecision.PENDING
    assert review.expert_id is None


def test_approve_publishes_and_notifies_owner(db, workflow, pending, expert, outbox):
    review = review_of(db, pending)
    before = utc_now()

    approved = workflow.approve(db, review.id, expert.id)

    assert approved.decision == ExpertiseDecision.APPROVED
    assert approved.expert_id == expert.id
    listing = workflow.get(db, pending.id)
    assert listing.status == ListingStatus.PUBLISHED
    assert before + timedelta(days=90) <= listing.expiration_date <= utc_now() + timedelta(days=90)
    [mail] = outbox.sent_to("owner@example.com")
    assert mail.subject == "Your listing has been approved!"
    assert "Peugeot 208 in great shape" in mail.html_body


def test_review_decisions_are_final(db, workflow, pending, expert):
    review = review_of(db, pending)
    workflow.approve(db, review.id, expert.id)
    with pytest.raises(InvalidStateError):
        workflow.approve(db, review.id, expert.id)
    with pytest.raises(InvalidStateError):
        workflow.reject(db, review.id, expert.id, "late")


def test_approval_requires_pending_listing(db, workflow, owner, pending, expert):
    review = review_of(db, pending)
    workflow.archive(db, pending.id, owner.id)
    with pytest.raises(InvalidStateError):
        workflow.approve(db, review.id, expert.id)
    with pytest.raises(NotFoundError):
        workflow.approve(db, "missing", expert.id)


def test_reject_then_resubmit_resets_the_same_review(db, workflow, owner, pending, expert, outbox):
    review = review_of(db, pending)
    workflow.update_report(db, review.id, expert.id, ExpertiseReportUpdate(condition_score=40))
    rejected = workflow.reject(db, review.id, expert.id, "Blurry photos", "Please add daylight photos")

    assert rejected.decision == ExpertiseDecision.REJECTED
    assert rejected.rejection_reason == "Blurry photos"
    assert workflow.get(db, pending.id).status == ListingStatus.REJECTED
    assert "Blurry photos" in outbox.sent_to("owner@example.com")[-1].html_body

    resubmitted = workflow.submit_for_review(db, pending.id, owner.id)
    assert resubmitted.status == ListingStatus.PENDING_REVIEW
    again = review_of(db, pending)
    assert again.id == review.id
    assert again.decision == ExpertiseDecision.PENDING
    assert again.rejection_reason is None
    assert again.condition_score is None
    assert again.expert_id is None


def test_submit_from_published_fails(db, workflow, owner, pending, expert):
    workflow.approve(db, review_of(db, pending).id, expert.id)
    with pytest.raises(InvalidStateError):
        workflow.submit_for_review(db, pending.id, owner.id)
    with pytest.raises(InvalidStateError):
        workflow.update(db, pending.id, owner.id, ListingUpdate(price=1))


@pytest.mark.parametrize("action", ["update", "submit", "archive", "delete"])
def test_ownership_is_checked_before_state(db, workflow, owner, draft, make_user, action):
    stranger = make_user("stranger")
    workflow.archive(db, draft.id, owner.id)
    calls = {
        "update": lambda: workflow.update(db, draft.id, stranger.id, ListingUpdate(price=1)),
        "submit": lambda: workflow.submit_for_review(db, draft.id, stranger.id),
        "archive": lambda: workflow.archive(db, draft.id, stranger.id),
        "delete": lambda: workflow.delete(db, draft.id, stranger.id),
    }
    with pytest.raises(ForbiddenError):
        calls[action]()


def test_archived_is_terminal(db, workflow, owner, draft):
    archived = workflow.archive(db, draft.id, owner.id)
    assert archived.status == ListingStatus.ARCHIVED
    with pytest.raises(InvalidStateError):
        workflow.archive(db, draft.id, owner.id)
    with pytest.raises(InvalidStateError):
        workflow.submit_for_review(db, draft.id, owner.id)
    with pytest.raises(InvalidStateError):
        workflow.update(db, draft.id, owner.id, ListingUpdate(title="New title"))


def test_update_merges_and_validates_details(db, workflow, owner, draft):
    updated = workflow.update(
        db,
        draft.id,
        owner.id,
        ListingUpdate(title="Updated", description=None, details={"financing_available": True}),
    )
    assert updated.title == "Updated"
    assert updated.details["financing_available"] is True
    assert updated.details["has_clear_title"] is True
    assert updated.version == 2

    with pytest.raises(ValidationFailedError):
        workflow.update(db, draft.id, owner.id, ListingUpdate(details={"security_deposit": 10}))


def test_update_ignores_null_for_required_fields(db, workflow, owner, draft):
    updated = workflow.update(db, draft.id, owner.id, ListingUpdate(title=None, price=39000))
    assert updated.title == "Peugeot 208 in great shape"
    assert updated.price == 39000


def test_delete_cascades_review(db, workflow, owner, pending):
    workflow.delete(db, pending.id, owner.id)
    assert db.query(Listing).count() == 0
    assert db.query(Expertise).count() == 0
    with pytest.raises(NotFoundError):
        workflow.get(db, pending.id)


def test_stale_version_loses_compare_and_set(db, workflow, owner, draft):
    stale_version = draft.version
    workflow.update(db, draft.id, owner.id, ListingUpdate(price=41000))
    assert not ListingRepository().compare_and_set(
        db, draft.id, stale_version, {ListingStatus.DRAFT}, {"title": "lost update"}
    )


def test_lost_race_reports_state_or_conflict(db, session_factory, workflow, owner, draft):
    other = session_factory()
    try:
        # another request bumps the version while this session still holds version 1
        workflow.update(other, draft.id, owner.id, ListingUpdate(price=40000))
        with pytest.raises(ConflictError):
            workflow.submit_for_review(db, draft.id, owner.id)

        workflow.archive(other, draft.id, owner.id)
        with pytest.raises(InvalidStateError):
            workflow.submit_for_review(db, draft.id, owner.id)
    finally:
        other.close()


def test_expert_report_and_document(db, workflow, pending, expert):
    review = review_of(db, pending)
    with pytest.raises(NotFoundError):
        workflow.set_document(db, review.id, expert.id, None)

    reported = workflow.update_report(
        db,
        review.id,
        expert.id,
        ExpertiseReportUpdate(technical_report="Clean engine bay", condition_score=87, estimated_value=40000),
    )
    assert reported.condition_score == 87
    assert reported.expert_id == expert.id

    attached = workflow.set_document(db, review.id, expert.id, "https://files.example.com/report.pdf")
    assert attached.document_url == "https://files.example.com/report.pdf"
    removed = workflow.set_document(db, review.id, expert.id, None)
    assert removed.document_url is None
    assert removed.technical_report == "Clean engine bay"


def test_pending_queue_and_published_search(db, workflow, owner, pending, expert):
    assert [review.listing_id for review in workflow.list_pending_reviews(db)] == [pending.id]
    items, total = workflow.list_published(db)
    assert (items, total) == ([], 0)

    workflow.approve(db, review_of(db, pending).id, expert.id)
    assert workflow.list_pending_reviews(db) == []
    items, total = workflow.list_published(db, location="Tun", max_price=50000)
    assert total == 1
    assert items[0].id == pending.id
    assert workflow.list_published(db, listing_type=ListingType.RENT) == ([], 0)
    assert workflow.list_published(db, min_price=50000)[1] == 0
    assert workflow.list_published(db, location="%")[1] == 0
    assert workflow.list_published(db, location="T_n")[1] == 0


def test_detail_view_counts(db, workflow, draft):
    workflow.get(db, draft.id, count_view=True)
    assert workflow.get(db, draft.id, count_view=True).view_count == 2
    assert workflow.get(db, draft.id).view_count == 2
