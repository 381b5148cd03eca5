from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.email import email_sender
from app.core.rate_limit import limiter
from app.core.security import bearer_scheme, token_issuer
from app.schemas.auth import (
    AuthResponse,
    ConfirmEmailRequest,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserOut,
    ValidateResponse,
)
from app.services.auth import AuthService
from app.services.refresh_tokens import RefreshTokenStore

router = APIRouter(prefix="/auth", tags=["auth"])
auth_service = AuthService(
    token_issuer=token_issuer,
    refresh_store=RefreshTokenStore(token_issuer, timedelta(days=settings.refresh_token_expire_days)),
    email_sender=email_sender,
)

REGISTERED_MESSAGE = "Registration successful. Check your email to confirm your account."
RESEND_MESSAGE = "If an unconfirmed account exists for this email, a confirmation link has been sent."
FORGOT_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def get_auth_service() -> AuthService:
    return auth_service


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(settings.register_rate_limit)
def register(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    user = service.register(db, payload.username, payload.email, payload.password)
    return RegisterResponse(message=REGISTERED_MESSAGE, user=UserOut.model_validate(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return service.login(db, credentials.username, credentials.password)


@router.post("/refresh", response_model=AuthResponse)
def refresh_tokens(
    request: RefreshRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return service.refresh(db, request.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: RefreshRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.logout(db, request.refresh_token)
    return MessageResponse(message="Logged out")


@router.post("/confirm-email", response_model=AuthResponse)
def confirm_email(
    request: ConfirmEmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return service.confirm_email(db, request.user_id, request.token)


@router.post("/resend-confirmation", response_model=MessageResponse)
@limiter.limit(settings.email_rate_limit)
def resend_confirmation(
    request: Request,
    payload: EmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.resend_confirmation(db, payload.email)
    return MessageResponse(message=RESEND_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.email_rate_limit)
def forgot_password(
    request: Request,
    payload: EmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.forgot_password(db, payload.email)
    return MessageResponse(message=FORGOT_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.reset_password(db, request.user_id, request.token, request.new_password)
    return MessageResponse(message="Password has been reset")


@router.get("/validate", response_model=ValidateResponse)
def validate(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: AuthService = Depends(get_auth_service),
) -> ValidateResponse:
    claims = service.inspect_token(credentials.credentials)
    if claims is None:
        return ValidateResponse(valid=False)
    return ValidateResponse(valid=True, username=claims.username, roles=list(claims.roles))
