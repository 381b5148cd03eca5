from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from app.models.user_token import TokenPurpose, UserToken


class UserTokenRepository:
    def create(
        self,
        db: Session,
        user_id: str,
        purpose: TokenPurpose,
        token_hash: str,
        expires_at: datetime,
    ) -> UserToken:
        record = UserToken(user_id=user_id, purpose=purpose, token_hash=token_hash, expires_at=expires_at)
        db.add(record)
        db.flush()
        return record

    def get_by_hash(self, db: Session, token_hash: str, purpose: TokenPurpose) -> Optional[UserToken]:
        return (
            db.query(UserToken)
            .filter(UserToken.token_hash == token_hash, UserToken.purpose == purpose)
            .first()
        )

    def consume_if_usable(self, db: Session, token_id: int, now: datetime) -> bool:
        result = db.execute(
            update(UserToken)
            .where(
                UserToken.id == token_id,
                UserToken.consumed.is_(False),
                UserToken.expires_at > now,
            )
            .values(consumed=True, consumed_at=now)
        )
        return result.rowcount == 1

    def invalidate_outstanding(self, db: Session, user_id: str, purpose: TokenPurpose, now: datetime) -> int:
        result = db.execute(
            update(UserToken)
            .where(
                UserToken.user_id == user_id,
                UserToken.purpose == purpose,
                UserToken.consumed.is_(False),
            )
            .values(consumed=True, consumed_at=now)
        )
        return int(result.rowcount or 0)

    def purge_expired(self, db: Session, now: datetime) -> int:
        """Delete expired or consumed tokens; returns the number of removed rows."""
        result = db.execute(
            delete(UserToken)
            .where(or_(UserToken.expires_at < now, UserToken.consumed.is_(True)))
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return int(result.rowcount or 0)
