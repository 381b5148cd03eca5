import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Enum as SqlEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, enum_values, utc_now

if TYPE_CHECKING:
    from app.models.expertise import Expertise


class ListingType(str, Enum):
    SALE = "SALE"
    RENT = "RENT"


class ListingStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class Currency(str, Enum):
    TND = "TND"
    EUR = "EUR"
    USD = "USD"


class Listing(Base):
    """A sale or rent offer for one vehicle.

    Both variants share this table; ``listing_type`` is the discriminator and
    ``details`` carries the variant-specific fields (see ``app.schemas.listings``).
    ``version`` is bumped by every write and guards against lost updates.
    """

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_type: Mapped[ListingType] = mapped_column(
        SqlEnum(ListingType, name="listing_types", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id: Mapped[str] = mapped_column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[Currency] = mapped_column(
        SqlEnum(Currency, name="currencies", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=Currency.TND,
    )
    is_price_negotiable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    features: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[ListingStatus] = mapped_column(
        SqlEnum(ListingStatus, name="listing_statuses", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=ListingStatus.DRAFT,
        index=True,
    )
    expiration_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    expertise: Mapped[Optional["Expertise"]] = relationship(
        back_populates="listing",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
