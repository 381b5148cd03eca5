from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.models.listing import Listing, ListingStatus, ListingType


class ListingRepository:
    def add(self, db: Session, listing: Listing) -> Listing:
        db.add(listing)
        db.flush()
        return listing

    def get(self, db: Session, listing_id: str) -> Optional[Listing]:
        return db.query(Listing).filter(Listing.id == listing_id).first()

    def list_for_owner(self, db: Session, owner_id: str) -> List[Listing]:
        return db.query(Listing).filter(Listing.owner_id == owner_id).order_by(Listing.created_at.desc()).all()

    def search(
        self,
        db: Session,
        status: ListingStatus,
        listing_type: Optional[ListingType] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        location: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Listing], int]:
        query = db.query(Listing).filter(Listing.status == status)
        if listing_type is not None:
            query = query.filter(Listing.listing_type == listing_type)
        if min_price is not None:
            query = query.filter(Listing.price >= min_price)
        if max_price is not None:
            query = query.filter(Listing.price <= max_price)
        if location:
            query = query.filter(Listing.location.contains(location, autoescape=True))

        total = query.count()
        items = (
            query.order_by(Listing.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def compare_and_set(
        self,
        db: Session,
        listing_id: str,
        expected_version: int,
        allowed_statuses: Iterable[ListingStatus],
        values: Dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the row still has ``expected_version`` and an allowed status."""
        result = db.execute(
            update(Listing)
            .where(
                Listing.id == listing_id,
                Listing.version == expected_version,
                Listing.status.in_(list(allowed_statuses)),
            )
            .values(version=Listing.version + 1, **values)
        )
        return result.rowcount == 1

    def delete_if_version(self, db: Session, listing_id: str, expected_version: int) -> bool:
        result = db.execute(
            delete(Listing)
            .where(Listing.id == listing_id, Listing.version == expected_version)
        )
        return result.rowcount == 1

    def increment_view_count(self, db: Session, listing_id: str) -> None:
        db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(view_count=Listing.view_count + 1)
        )
