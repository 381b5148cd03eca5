from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.refresh_token import RefreshToken


class RefreshTokenRepository:
    def create(self, db: Session, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        db.add(record)
        db.flush()
        return record

    def get_by_token(self, db: Session, token: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(RefreshToken.token == token).first()

    def revoke_if_active(
        self,
        db: Session,
        token: str,
        now: datetime,
        replaced_by: Optional[str] = None,
    ) -> bool:
        """Compare-and-set revocation: True only for the caller that flipped ``is_revoked``."""
        result = db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(is_revoked=True, revoked_at=now, revoked_by_token=replaced_by)
        )
        return result.rowcount == 1

    def revoke(self, db: Session, token: str, now: datetime) -> bool:
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True, revoked_at=now)
        )
        return result.rowcount == 1

    def revoke_all_for_user(self, db: Session, user_id: str, now: datetime) -> int:
        result = db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True, revoked_at=now)
        )
        return int(result.rowcount or 0)
