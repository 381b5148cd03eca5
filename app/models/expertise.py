import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SqlEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, enum_values, utc_now

if TYPE_CHECKING:
    from app.models.listing import Listing


class ExpertiseDecision(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Expertise(Base):
    """Current review state of a listing; one row per listing, reset on resubmission."""

    __tablename__ = "expertises"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("listings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    expert_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    decision: Mapped[ExpertiseDecision] = mapped_column(
        SqlEnum(ExpertiseDecision, name="expertise_decisions", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=ExpertiseDecision.PENDING,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    rejection_feedback: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    technical_report: Mapped[Optional[str]] = mapped_column(String(5000), nullable=True)
    condition_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    estimated_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    inspection_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    listing: Mapped["Listing"] = relationship(back_populates="expertise")
