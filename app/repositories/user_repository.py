from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.user import AccountStatus, User, UserRole


class UserRepository:
    def get(self, db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(func.lower(User.email) == email.lower()).first()

    def get_by_username(self, db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    def create(
        self,
        db: Session,
        username: str,
        email: str,
        hashed_password: str,
        role: UserRole = UserRole.USER,
        status: AccountStatus = AccountStatus.UNCONFIRMED,
    ) -> User:
        user = User(
            username=username,
            email=email,
            hashed_password=hashed_password,
            role=role,
            status=status,
        )
        db.add(user)
        db.flush()
        return user
