"""Authentication schema definitions."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, constr

from backend.schemas.base import BaseSchema


NameStr = constr(strip_whitespace=True, min_length=1, max_length=100)
PasswordStr = constr(min_length=8, max_length=128)
EmailLike = constr(pattern=r"[^@\s]+@[^@\s]+\.[^@\s]+", min_length=5, max_length=255)


class SignupRequest(BaseModel):
    """Payload for creating a new account."""

    email: EmailLike
    password: PasswordStr
    name: Optional[NameStr] = None


class LoginRequest(BaseModel):
    """Login payload."""

    email: EmailLike
    password: constr(min_length=1, max_length=128)


class SessionUser(BaseModel):
    """The ``user`` object of a session lookup."""

    id: UUID
    email: str
    name: Optional[str] = None


class UserInfo(BaseSchema):
    user_id: UUID
    email: str
    name: Optional[str] = None
    is_premium: bool
    active_jar_id: Optional[UUID] = None
    created_at: datetime
    last_login_date: Optional[datetime] = None


class AuthTokenResponse(BaseModel):
    """Standard response containing JWT credentials."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class AuthSessionResponse(BaseModel):
    """Session lookup response for cookie/header-based auth checks."""

    user: SessionUser


class LogoutResponse(BaseModel):
    success: bool = True
