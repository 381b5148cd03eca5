import math
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.email import email_sender
from app.core.security import AccessTokenClaims, get_current_principal
from app.models.listing import ListingType
from app.schemas.listings import ListingCreate, ListingOut, ListingPage, ListingUpdate
from app.services.listings import ListingWorkflow

router = APIRouter(prefix="/listings", tags=["listings"])
listing_workflow = ListingWorkflow(email_sender=email_sender)


def get_listing_workflow() -> ListingWorkflow:
    return listing_workflow


@router.get("", response_model=ListingPage)
def list_published(
    listing_type: Optional[ListingType] = None,
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    location: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingPage:
    items, total = workflow.list_published(
        db,
        listing_type=listing_type,
        min_price=min_price,
        max_price=max_price,
        location=location,
        page=page,
        page_size=page_size,
    )
    total_pages = math.ceil(total / page_size) if total else 0
    return ListingPage(
        items=[ListingOut.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1,
    )


@router.get("/mine", response_model=list[ListingOut])
def list_my_listings(
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> list[ListingOut]:
    return workflow.list_for_owner(db, principal.subject_id)


@router.get("/{listing_id}", response_model=ListingOut)
def get_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingOut:
    return workflow.get(db, listing_id, count_view=True)


@router.post("", response_model=ListingOut, status_code=201)
def create_listing(
    payload: Annotated[ListingCreate, Body(discriminator="listing_type")],
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingOut:
    return workflow.create(db, principal.subject_id, payload)


@router.patch("/{listing_id}", response_model=ListingOut)
def update_listing(
    listing_id: str,
    changes: ListingUpdate,
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingOut:
    return workflow.update(db, listing_id, principal.subject_id, changes)


@router.post("/{listing_id}/submit", response_model=ListingOut)
def submit_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingOut:
    return workflow.submit_for_review(db, listing_id, principal.subject_id)


@router.post("/{listing_id}/archive", response_model=ListingOut)
def archive_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> ListingOut:
    return workflow.archive(db, listing_id, principal.subject_id)


@router.delete("/{listing_id}", status_code=204)
def delete_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    principal: AccessTokenClaims = Depends(get_current_principal),
    workflow: ListingWorkflow = Depends(get_listing_workflow),
) -> Response:
    workflow.delete(db, listing_id, principal.subject_id)
    return Response(status_code=204)
