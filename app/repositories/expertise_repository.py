from typing import Any, Dict, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.models.expertise import Expertise, ExpertiseDecision
from app.models.listing import Listing, ListingStatus


class ExpertiseRepository:
    def create(self, db: Session, listing_id: str) -> Expertise:
        expertise = Expertise(listing_id=listing_id, decision=ExpertiseDecision.PENDING)
        db.add(expertise)
        db.flush()
        return expertise

    def get(self, db: Session, expertise_id: str) -> Optional[Expertise]:
        return db.query(Expertise).filter(Expertise.id == expertise_id).first()

    def get_by_listing(self, db: Session, listing_id: str) -> Optional[Expertise]:
        return db.query(Expertise).filter(Expertise.listing_id == listing_id).first()

    def list_pending(self, db: Session) -> List[Expertise]:
        return (
            db.query(Expertise)
            .join(Listing, Listing.id == Expertise.listing_id)
            .filter(
                Expertise.decision == ExpertiseDecision.PENDING,
                Listing.status == ListingStatus.PENDING_REVIEW,
            )
            .order_by(Expertise.created_at)
            .all()
        )

    def compare_and_set(
        self,
        db: Session,
        expertise_id: str,
        expected_version: int,
        expected_decision: Optional[ExpertiseDecision],
        values: Dict[str, Any],
    ) -> bool:
        conditions = [Expertise.id == expertise_id, Expertise.version == expected_version]
        if expected_decision is not None:
            conditions.append(Expertise.decision == expected_decision)
        result = db.execute(
            update(Expertise)
            .where(*conditions)
            .values(version=Expertise.version + 1, **values)
        )
        return result.rowcount == 1

    def delete_for_listing(self, db: Session, listing_id: str) -> None:
        db.execute(
            delete(Expertise)
            .where(Expertise.listing_id == listing_id)
        )
