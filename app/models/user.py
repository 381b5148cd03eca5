import uuid
from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import DateTime, Enum as SqlEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, enum_values, utc_now


class UserRole(str, Enum):
    USER = "user"
    EXPERT = "expert"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    UNCONFIRMED = "unconfirmed"
    ACTIVE = "active"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_roles", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=UserRole.USER,
    )
    status: Mapped[AccountStatus] = mapped_column(
        SqlEnum(AccountStatus, name="account_statuses", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=AccountStatus.UNCONFIRMED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    @property
    def roles(self) -> List[str]:
        return [self.role.value]

    @property
    def is_confirmed(self) -> bool:
        return self.status == AccountStatus.ACTIVE
