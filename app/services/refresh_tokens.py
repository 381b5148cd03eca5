import logging
from datetime import timedelta
from typing import Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import (
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    RefreshTokenRevokedError,
)
from app.core.security import TokenIssuer
from app.models.base import utc_now
from app.models.refresh_token import RefreshToken
from app.repositories.refresh_token_repository import RefreshTokenRepository

logger = logging.getLogger(__name__)


class RefreshTokenStore:
    """Lifecycle of persisted refresh tokens: issue, rotate on use, revoke.

    Every public method commits the session it is given, so pending changes made
    by the caller in the same session are committed together with the token write.
    """

    def __init__(
        self,
        token_issuer: TokenIssuer,
        refresh_ttl: timedelta,
        repo: RefreshTokenRepository | None = None,
    ):
        self.token_issuer = token_issuer
        self.refresh_ttl = refresh_ttl
        self.repo = repo or RefreshTokenRepository()

    def issue(self, db: Session, user_id: str) -> RefreshToken:
        now = utc_now()
        record = self.repo.create(
            db,
            token=self.token_issuer.issue_refresh_token(),
            user_id=user_id,
            expires_at=now + self.refresh_ttl,
        )
        db.commit()
        db.refresh(record)
        return record

    def validate_and_rotate(self, db: Session, token_value: str) -> Tuple[RefreshToken, str]:
        now = utc_now()
        record = self.repo.get_by_token(db, token_value)
        if record is None:
            raise RefreshTokenNotFoundError()

        if record.is_revoked:
            if record.revoked_by_token is not None:
                # a rotated token came back: assume the chain leaked and end every session of the user
                revoked = self.repo.revoke_all_for_user(db, record.user_id, now)
                db.commit()
                logger.warning(
                    "Refresh token reuse detected for user %s; revoked %d active token(s)",
                    record.user_id,
                    revoked,
                )
            raise RefreshTokenRevokedError()

        if now >= record.expires_at:
            raise RefreshTokenExpiredError()

        user_id = record.user_id
        new_value = self.token_issuer.issue_refresh_token()
        if not self.repo.revoke_if_active(db, token_value, now, replaced_by=new_value):
            db.rollback()
            raise RefreshTokenRevokedError()

        new_record = self.repo.create(db, token=new_value, user_id=user_id, expires_at=now + self.refresh_ttl)
        db.commit()
        db.refresh(new_record)
        return new_record, user_id

    def revoke(self, db: Session, token_value: str) -> bool:
        revoked = self.repo.revoke(db, token_value, utc_now())
        db.commit()
        return revoked

    def revoke_all_for_user(self, db: Session, user_id: str) -> int:
        revoked = self.repo.revoke_all_for_user(db, user_id, utc_now())
        db.commit()
        return revoked
