from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, constr

from app.models.user import AccountStatus, UserRole

Username = constr(min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
Password = constr(min_length=6, max_length=128)


class RegisterRequest(BaseModel):
    username: Username  # type: ignore[valid-type]
    email: EmailStr
    password: Password  # type: ignore[valid-type]


class LoginRequest(BaseModel):
    username: constr(min_length=1)  # type: ignore[valid-type]
    password: constr(min_length=1)  # type: ignore[valid-type]


class RefreshRequest(BaseModel):
    refresh_token: constr(min_length=1)  # type: ignore[valid-type]


class ConfirmEmailRequest(BaseModel):
    user_id: str
    token: constr(min_length=1)  # type: ignore[valid-type]


class EmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    user_id: str
    token: constr(min_length=1)  # type: ignore[valid-type]
    new_password: Password  # type: ignore[valid-type]


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: EmailStr
    role: UserRole
    status: AccountStatus
    created_at: datetime


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    username: str
    roles: List[str]


class RegisterResponse(BaseModel):
    message: str
    user: UserOut


class MessageResponse(BaseModel):
    message: str


class ValidateResponse(BaseModel):
    valid: bool
    username: Optional[str] = None
    roles: List[str] = []


class RoleUpdateRequest(BaseModel):
    role: UserRole
