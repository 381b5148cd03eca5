import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.email import EmailSender
from app.core.exceptions import (
    AccessTokenError,
    ConflictError,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    RefreshTokenNotFoundError,
)
from app.core.security import (
    AccessTokenClaims,
    TokenIssuer,
    dummy_verify,
    generate_opaque_token,
    hash_password,
    hash_token,
    verify_password,
)
from app.models.base import utc_now
from app.models.user import AccountStatus, User, UserRole
from app.models.user_token import TokenPurpose, UserToken
from app.repositories.user_repository import UserRepository
from app.repositories.user_token_repository import UserTokenRepository
from app.schemas.auth import AuthResponse
from app.services import notifications
from app.services.refresh_tokens import RefreshTokenStore

logger = logging.getLogger(__name__)

USER_TOKEN_BYTES = 32


class AuthService:
    """Account and session flows on top of TokenIssuer, RefreshTokenStore and an email sender."""

    def __init__(
        self,
        token_issuer: TokenIssuer,
        refresh_store: RefreshTokenStore,
        email_sender: EmailSender,
        user_repo: UserRepository | None = None,
        user_token_repo: UserTokenRepository | None = None,
        frontend_url: str = settings.frontend_url,
        email_token_ttl: timedelta = timedelta(hours=settings.email_token_expire_hours),
    ):
        self.token_issuer = token_issuer
        self.refresh_store = refresh_store
        self.email_sender = email_sender
        self.user_repo = user_repo or UserRepository()
        self.user_token_repo = user_token_repo or UserTokenRepository()
        self.frontend_url = frontend_url
        self.email_token_ttl = email_token_ttl

    def register(self, db: Session, username: str, email: str, password: str) -> User:
        if self.user_repo.get_by_username(db, username):
            raise ConflictError("Username already exists")
        if self.user_repo.get_by_email(db, email):
            raise ConflictError("Email already registered")

        user = self.user_repo.create(
            db,
            username=username,
            email=email,
            hashed_password=hash_password(password),
        )
        token = self._new_user_token(db, user.id, TokenPurpose.EMAIL_CONFIRMATION)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError("Username or email already registered") from exc
        db.refresh(user)

        logger.info("User %s registered", user.username)
        self._send_confirmation(user, token)
        return user

    def login(self, db: Session, username: str, password: str) -> AuthResponse:
        user = self.user_repo.get_by_username(db, username)
        if user is None:
            dummy_verify()
            raise InvalidCredentialsError()
        if not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError()
        if not user.is_confirmed:
            raise EmailNotConfirmedError()

        response = self._issue_pair(db, user)
        logger.info("User %s logged in", user.username)
        return response

    def refresh(self, db: Session, refresh_token: str) -> AuthResponse:
        record, user_id = self.refresh_store.validate_and_rotate(db, refresh_token)
        user = self.user_repo.get(db, user_id)
        if user is None:
            raise RefreshTokenNotFoundError()
        return self._build_response(user, record.token)

    def logout(self, db: Session, refresh_token: str) -> None:
        self.refresh_store.revoke(db, refresh_token)

    def confirm_email(self, db: Session, user_id: str, token: str) -> AuthResponse:
        self._consume_user_token(db, user_id, token, TokenPurpose.EMAIL_CONFIRMATION)
        user = self.user_repo.get(db, user_id)
        if user is None:
            raise InvalidOrExpiredTokenError()
        user.status = AccountStatus.ACTIVE
        # the refresh token write commits the activation and the consumed token with it
        response = self._issue_pair(db, user)
        logger.info("Email confirmed for user %s", user.username)
        return response

    def resend_confirmation(self, db: Session, email: str) -> None:
        user = self.user_repo.get_by_email(db, email)
        if user is None or user.is_confirmed:
            return

        self.user_token_repo.invalidate_outstanding(db, user.id, TokenPurpose.EMAIL_CONFIRMATION, utc_now())
        token = self._new_user_token(db, user.id, TokenPurpose.EMAIL_CONFIRMATION)
        db.commit()
        self._send_confirmation(user, token)

    def forgot_password(self, db: Session, email: str) -> None:
        user = self.user_repo.get_by_email(db, email)
        if user is None:
            return

        self.user_token_repo.invalidate_outstanding(db, user.id, TokenPurpose.PASSWORD_RESET, utc_now())
        token = self._new_user_token(db, user.id, TokenPurpose.PASSWORD_RESET)
        db.commit()

        link = notifications.build_link(self.frontend_url, "/reset-password", userId=user.id, token=token)
        subject, body = notifications.password_reset_email(user.username, link)
        notifications.send_quietly(self.email_sender, user.email, subject, body)

    def reset_password(self, db: Session, user_id: str, token: str, new_password: str) -> None:
        self._consume_user_token(db, user_id, token, TokenPurpose.PASSWORD_RESET)
        user = self.user_repo.get(db, user_id)
        if user is None:
            raise InvalidOrExpiredTokenError()
        user.hashed_password = hash_password(new_password)
        revoked = self.refresh_store.revoke_all_for_user(db, user.id)
        logger.info("Password reset for user %s; %d session(s) revoked", user.username, revoked)

    def inspect_token(self, access_token: str) -> Optional[AccessTokenClaims]:
        try:
            return self.token_issuer.validate_access_token(access_token)
        except AccessTokenError:
            return None

    def validate_token(self, access_token: str) -> bool:
        return self.inspect_token(access_token) is not None

    def assign_role(self, db: Session, user_id: str, role: UserRole) -> User:
        user = self.user_repo.get(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        user.role = role
        db.commit()
        db.refresh(user)
        logger.info("User %s now has role %s", user.username, role.value)
        return user

    def ensure_admin(self, db: Session, username: str, email: str, password: str) -> User:
        """Create a confirmed admin account unless one with that username already exists."""
        existing = self.user_repo.get_by_username(db, username)
        if existing is not None:
            return existing
        user = self.user_repo.create(
            db,
            username=username,
            email=email,
            hashed_password=hash_password(password),
            role=UserRole.ADMIN,
            status=AccountStatus.ACTIVE,
        )
        db.commit()
        db.refresh(user)
        logger.info("Admin account %s created", username)
        return user

    def _issue_pair(self, db: Session, user: User) -> AuthResponse:
        record = self.refresh_store.issue(db, user.id)
        return self._build_response(user, record.token)

    def _build_response(self, user: User, refresh_token: str) -> AuthResponse:
        return AuthResponse(
            access_token=self.token_issuer.issue_access_token(user.id, user.username, user.roles),
            refresh_token=refresh_token,
            expires_at=self.token_issuer.access_token_expiry(),
            username=user.username,
            roles=user.roles,
        )

    def _new_user_token(self, db: Session, user_id: str, purpose: TokenPurpose) -> str:
        token = generate_opaque_token(USER_TOKEN_BYTES)
        self.user_token_repo.create(
            db,
            user_id=user_id,
            purpose=purpose,
            token_hash=hash_token(token),
            expires_at=utc_now() + self.email_token_ttl,
        )
        return token

    def _consume_user_token(self, db: Session, user_id: str, token: str, purpose: TokenPurpose) -> UserToken:
        now = utc_now()
        record = self.user_token_repo.get_by_hash(db, hash_token(token), purpose)
        if record is None or record.user_id != user_id or not record.is_usable(now):
            raise InvalidOrExpiredTokenError()
        if not self.user_token_repo.consume_if_usable(db, record.id, now):
            db.rollback()
            raise InvalidOrExpiredTokenError()
        return record

    def _send_confirmation(self, user: User, token: str) -> None:
        link = notifications.build_link(self.frontend_url, "/confirm-email", userId=user.id, token=token)
        hours = int(self.email_token_ttl.total_seconds() // 3600)
        subject, body = notifications.confirmation_email(user.username, link, hours)
        notifications.send_quietly(self.email_sender, user.email, subject, body)
