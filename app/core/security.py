import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Sequence, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError
from passlib.context import CryptContext

from app.core.config import Settings, settings
from app.core.exceptions import (
    AccessTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_BYTES = 64

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (passlib)."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def dummy_verify() -> None:
    """Burn the same time as a real verification when there is no user to check against."""
    pwd_context.dummy_verify()


def hash_token(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_opaque_token(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(nbytes)


@dataclass(frozen=True)
class AccessTokenClaims:
    subject_id: str
    username: str
    roles: Tuple[str, ...]
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str

    def has_any_role(self, roles: set[str]) -> bool:
        return any(role in roles for role in self.roles)


class TokenIssuer:
    """Mints and validates signed access tokens and generates opaque refresh values.

    Holds no state besides its signing configuration, so one instance can be
    shared by every request.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str,
        issuer: str,
        audience: str,
        access_ttl: timedelta,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenIssuer":
        return cls(
            secret_key=config.secret_key,
            algorithm=config.algorithm,
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            access_ttl=timedelta(minutes=config.access_token_expire_minutes),
        )

    def issue_access_token(self, user_id: str, username: str, roles: Sequence[str]) -> str:
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = {
            "sub": str(user_id),
            "username": username,
            "roles": list(roles),
            "iat": now,
            "exp": now + self.access_ttl,
            "iss": self.issuer,
            "aud": self.audience,
            "jti": uuid.uuid4().hex,
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def issue_refresh_token(self) -> str:
        return generate_opaque_token(REFRESH_TOKEN_BYTES)

    def validate_access_token(self, token: str) -> AccessTokenClaims:
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedTokenError() from exc

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTClaimsError as exc:
            raise MalformedTokenError("Invalid token claims") from exc
        except JWTError as exc:
            raise InvalidSignatureError() from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
            raise MalformedTokenError()
        try:
            return AccessTokenClaims(
                subject_id=str(payload["sub"]),
                username=str(payload.get("username", "")),
                roles=tuple(payload.get("roles") or ()),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
                issuer=str(payload["iss"]),
                audience=str(payload["aud"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedTokenError() from exc

    def access_token_expiry(self) -> datetime:
        return datetime.now(timezone.utc) + self.access_ttl


token_issuer = TokenIssuer.from_settings(settings)


def get_token_issuer() -> TokenIssuer:
    return token_issuer


bearer_scheme = HTTPBearer(auto_error=True)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessTokenClaims:
    try:
        return issuer.validate_access_token(credentials.credentials)
    except AccessTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_roles(roles: set[str]) -> Callable:
    def dependency(principal: AccessTokenClaims = Depends(get_current_principal)) -> AccessTokenClaims:
        if not principal.has_any_role(roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return principal

    return dependency
