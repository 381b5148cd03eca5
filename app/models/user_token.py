from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, CHAR, DateTime, Enum as SqlEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, enum_values, utc_now


class TokenPurpose(str, Enum):
    EMAIL_CONFIRMATION = "email_confirmation"
    PASSWORD_RESET = "password_reset"


class UserToken(Base):
    """Single-use email confirmation / password reset token. Only the SHA-256 digest is stored."""

    __tablename__ = "user_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    purpose: Mapped[TokenPurpose] = mapped_column(
        SqlEnum(
            TokenPurpose,
            name="token_purposes",
            native_enum=False,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(CHAR(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    consumed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def is_usable(self, now: datetime) -> bool:
        return not self.consumed and now < self.expires_at
