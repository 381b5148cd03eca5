import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.email import EmailSender
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
from app.repositories.expertise_repository import ExpertiseRepository
from app.repositories.listing_repository import ListingRepository
from app.repositories.user_repository import UserRepository
from app.repositories.vehicle_repository import VehicleRepository
from app.schemas.expertise import ExpertiseReportUpdate
from app.schemas.listings import DETAILS_BY_TYPE, ListingCreate, ListingUpdate
from app.services import notifications

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = frozenset({ListingStatus.DRAFT, ListingStatus.REJECTED})
CLEARABLE_FIELDS = frozenset({"description", "contact_phone"})

# every transition the workflow can perform; ARCHIVED has no outgoing edge
TRANSITIONS: Dict[ListingStatus, frozenset] = {
    ListingStatus.DRAFT: frozenset({ListingStatus.PENDING_REVIEW, ListingStatus.ARCHIVED}),
    ListingStatus.PENDING_REVIEW: frozenset(
        {ListingStatus.PUBLISHED, ListingStatus.REJECTED, ListingStatus.ARCHIVED}
    ),
    ListingStatus.PUBLISHED: frozenset({ListingStatus.ARCHIVED}),
    ListingStatus.REJECTED: frozenset({ListingStatus.PENDING_REVIEW, ListingStatus.ARCHIVED}),
    ListingStatus.ARCHIVED: frozenset(),
}


def sources_for(target: ListingStatus) -> frozenset:
    """Statuses from which a listing may move to ``target``."""
    return frozenset(source for source, targets in TRANSITIONS.items() if target in targets)


SUBMITTABLE_STATUSES = sources_for(ListingStatus.PENDING_REVIEW)
ARCHIVABLE_STATUSES = sources_for(ListingStatus.ARCHIVED)

_REVIEW_RESET: Dict[str, Any] = {
    "decision": ExpertiseDecision.PENDING,
    "expert_id": None,
    "rejection_reason": None,
    "rejection_feedback": None,
    "document_url": None,
    "technical_report": None,
    "condition_score": None,
    "estimated_value": None,
    "inspection_date": None,
}


class ListingWorkflow:
    """Listing lifecycle and the expert review attached to it.

    Every status change is a conditional UPDATE on ``(id, version, status)`` so
    that of two concurrent requests on the same listing only one can win.
    """

    def __init__(
        self,
        email_sender: EmailSender,
        listing_repo: ListingRepository | None = None,
        expertise_repo: ExpertiseRepository | None = None,
        vehicle_repo: VehicleRepository | None = None,
        user_repo: UserRepository | None = None,
        publication_period: timedelta = timedelta(days=settings.listing_publication_days),
    ):
        self.email_sender = email_sender
        self.listing_repo = listing_repo or ListingRepository()
        self.expertise_repo = expertise_repo or ExpertiseRepository()
        self.vehicle_repo = vehicle_repo or VehicleRepository()
        self.user_repo = user_repo or UserRepository()
        self.publication_period = publication_period

    def get(self, db: Session, listing_id: str, count_view: bool = False) -> Listing:
        listing = self._get_listing(db, listing_id)
        if count_view:
            self.listing_repo.increment_view_count(db, listing_id)
            db.commit()
            db.refresh(listing)
        return listing

    def list_published(
        self,
        db: Session,
        listing_type: Optional[ListingType] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        location: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Listing], int]:
        return self.listing_repo.search(
            db,
            status=ListingStatus.PUBLISHED,
            listing_type=listing_type,
            min_price=min_price,
            max_price=max_price,
            location=location,
            page=page,
            page_size=page_size,
        )

    def list_for_owner(self, db: Session, owner_id: str) -> List[Listing]:
        return self.listing_repo.list_for_owner(db, owner_id)

    def list_pending_reviews(self, db: Session) -> List[Expertise]:
        return self.expertise_repo.list_pending(db)

    def create(self, db: Session, owner_id: str, payload: ListingCreate) -> Listing:
        vehicle = self.vehicle_repo.get(db, payload.vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        if vehicle.owner_id != owner_id:
            raise ForbiddenError("Vehicle does not belong to the current user")

        listing = Listing(
            listing_type=ListingType(payload.listing_type),
            owner_id=owner_id,
            vehicle_id=vehicle.id,
            title=payload.title,
            description=payload.description,
            price=payload.price,
            currency=payload.currency,
            is_price_negotiable=payload.is_price_negotiable,
            contact_phone=payload.contact_phone,
            location=payload.location,
            features=list(payload.features),
            details=payload.details.model_dump(),
            status=ListingStatus.DRAFT,
        )
        self.listing_repo.add(db, listing)
        db.commit()
        db.refresh(listing)
        logger.info("Listing %s created by %s", listing.id, owner_id)
        return listing

    def update(self, db: Session, listing_id: str, owner_id: str, changes: ListingUpdate) -> Listing:
        listing = self._get_owned(db, listing_id, owner_id)
        self._require_status(listing, EDITABLE_STATUSES, "update")

        values = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True, exclude={"details"}).items()
            if value is not None or field in CLEARABLE_FIELDS
        }
        if changes.details is not None:
            values["details"] = self._merge_details(listing, changes.details)
        values["updated_at"] = utc_now()

        self._transition(db, listing, EDITABLE_STATUSES, values)
        db.commit()
        db.refresh(listing)
        return listing

    def submit_for_review(self, db: Session, listing_id: str, owner_id: str) -> Listing:
        listing = self._get_owned(db, listing_id, owner_id)
        self._require_status(listing, SUBMITTABLE_STATUSES, "submit")

        now = utc_now()
        self._transition(
            db,
            listing,
            SUBMITTABLE_STATUSES,
            {"status": ListingStatus.PENDING_REVIEW, "updated_at": now},
        )
        expertise = self.expertise_repo.get_by_listing(db, listing.id)
        if expertise is None:
            self.expertise_repo.create(db, listing.id)
        elif not self.expertise_repo.compare_and_set(
            db, expertise.id, expertise.version, None, dict(_REVIEW_RESET, updated_at=now)
        ):
            db.rollback()
            raise ConflictError("Review was modified concurrently")

        db.commit()
        db.refresh(listing)
        logger.info("Listing %s submitted for review", listing.id)
        return listing

    def archive(self, db: Session, listing_id: str, owner_id: str) -> Listing:
        listing = self._get_owned(db, listing_id, owner_id)
        self._require_status(listing, ARCHIVABLE_STATUSES, "archive")
        self._transition(
            db,
            listing,
            ARCHIVABLE_STATUSES,
            {"status": ListingStatus.ARCHIVED, "updated_at": utc_now()},
        )
        db.commit()
        db.refresh(listing)
        logger.info("Listing %s archived", listing.id)
        return listing

    def delete(self, db: Session, listing_id: str, owner_id: str) -> None:
        listing = self._get_owned(db, listing_id, owner_id)
        version = listing.version
        self.expertise_repo.delete_for_listing(db, listing.id)
        if not self.listing_repo.delete_if_version(db, listing.id, version):
            db.rollback()
            if self.listing_repo.get(db, listing_id) is None:
                raise NotFoundError("Listing not found")
            raise ConflictError("Listing was modified concurrently")
        db.commit()
        logger.info("Listing %s deleted", listing_id)

    def approve(self, db: Session, expertise_id: str, expert_id: str) -> Expertise:
        expertise, listing = self._get_reviewable(db, expertise_id)
        now = utc_now()
        self._transition(
            db,
            listing,
            sources_for(ListingStatus.PUBLISHED),
            {
                "status": ListingStatus.PUBLISHED,
                "expiration_date": now + self.publication_period,
                "updated_at": now,
            },
        )
        self._decide(
            db,
            expertise,
            {"decision": ExpertiseDecision.APPROVED, "expert_id": expert_id, "updated_at": now},
        )
        db.commit()
        db.refresh(expertise)
        db.refresh(listing)
        logger.info("Listing %s approved by %s", listing.id, expert_id)

        owner = self.user_repo.get(db, listing.owner_id)
        if owner is not None:
            subject, body = notifications.listing_approved_email(
                owner.username, listing.title, expertise.condition_score
            )
            notifications.send_quietly(self.email_sender, owner.email, subject, body)
        return expertise

    def reject(
        self,
        db: Session,
        expertise_id: str,
        expert_id: str,
        reason: Optional[str] = None,
        feedback: Optional[str] = None,
    ) -> Expertise:
        expertise, listing = self._get_reviewable(db, expertise_id)
        now = utc_now()
        self._transition(
            db,
            listing,
            sources_for(ListingStatus.REJECTED),
            {"status": ListingStatus.REJECTED, "updated_at": now},
        )
        self._decide(
            db,
            expertise,
            {
                "decision": ExpertiseDecision.REJECTED,
                "expert_id": expert_id,
                "rejection_reason": reason,
                "rejection_feedback": feedback,
                "updated_at": now,
            },
        )
        db.commit()
        db.refresh(expertise)
        db.refresh(listing)
        logger.info("Listing %s rejected by %s", listing.id, expert_id)

        owner = self.user_repo.get(db, listing.owner_id)
        if owner is not None:
            subject, body = notifications.listing_rejected_email(owner.username, listing.title, reason, feedback)
            notifications.send_quietly(self.email_sender, owner.email, subject, body)
        return expertise

    def update_report(
        self,
        db: Session,
        expertise_id: str,
        expert_id: str,
        changes: ExpertiseReportUpdate,
    ) -> Expertise:
        expertise, _ = self._get_reviewable(db, expertise_id)
        values = changes.model_dump(exclude_unset=True)
        values.update(expert_id=expert_id, updated_at=utc_now())
        self._decide(db, expertise, values)
        db.commit()
        db.refresh(expertise)
        return expertise

    def set_document(
        self,
        db: Session,
        expertise_id: str,
        expert_id: str,
        document_url: Optional[str],
    ) -> Expertise:
        """Attach, replace or (with ``None``) remove the review document."""
        expertise, _ = self._get_reviewable(db, expertise_id)
        if document_url is None and not expertise.document_url:
            raise NotFoundError("No document to delete")
        self._decide(
            db,
            expertise,
            {"document_url": document_url, "expert_id": expert_id, "updated_at": utc_now()},
        )
        db.commit()
        db.refresh(expertise)
        return expertise

    def _get_listing(self, db: Session, listing_id: str) -> Listing:
        listing = self.listing_repo.get(db, listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")
        return listing

    def _get_owned(self, db: Session, listing_id: str, owner_id: str) -> Listing:
        listing = self._get_listing(db, listing_id)
        if listing.owner_id != owner_id:
            raise ForbiddenError("You can only manage your own listings")
        return listing

    def _get_reviewable(self, db: Session, expertise_id: str) -> Tuple[Expertise, Listing]:
        expertise = self.expertise_repo.get(db, expertise_id)
        if expertise is None:
            raise NotFoundError("Expertise not found")
        listing = self._get_listing(db, expertise.listing_id)
        if listing.status != ListingStatus.PENDING_REVIEW or expertise.decision != ExpertiseDecision.PENDING:
            raise InvalidStateError(
                f"Listing must be {ListingStatus.PENDING_REVIEW.value} with a pending review, "
                f"got {listing.status.value}/{expertise.decision.value}"
            )
        return expertise, listing

    @staticmethod
    def _require_status(listing: Listing, allowed: Iterable[ListingStatus], action: str) -> None:
        if listing.status not in allowed:
            raise InvalidStateError(f"Cannot {action} a listing with status {listing.status.value}")

    def _transition(
        self,
        db: Session,
        listing: Listing,
        allowed: Iterable[ListingStatus],
        values: Dict[str, Any],
    ) -> None:
        allowed = frozenset(allowed)
        if self.listing_repo.compare_and_set(db, listing.id, listing.version, allowed, values):
            return
        db.rollback()
        current = self.listing_repo.get(db, listing.id)
        if current is None:
            raise NotFoundError("Listing not found")
        if current.status not in allowed:
            raise InvalidStateError(f"Listing status changed to {current.status.value}")
        raise ConflictError("Listing was modified concurrently")

    def _decide(self, db: Session, expertise: Expertise, values: Dict[str, Any]) -> None:
        if self.expertise_repo.compare_and_set(
            db, expertise.id, expertise.version, ExpertiseDecision.PENDING, values
        ):
            return
        db.rollback()
        current = self.expertise_repo.get(db, expertise.id)
        if current is None:
            raise NotFoundError("Expertise not found")
        if current.decision != ExpertiseDecision.PENDING:
            raise InvalidStateError(f"Review already {current.decision.value}")
        raise ConflictError("Review was modified concurrently")

    @staticmethod
    def _merge_details(listing: Listing, changes: Dict[str, Any]) -> Dict[str, Any]:
        model = DETAILS_BY_TYPE[listing.listing_type]
        try:
            return model.model_validate({**(listing.details or {}), **changes}).model_dump()
        except ValidationError as exc:
            raise ValidationFailedError(f"Invalid {listing.listing_type.value} details: {exc}") from exc
