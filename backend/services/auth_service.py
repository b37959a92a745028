"""Authentication and credential helpers."""
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.user import User
from backend.utils.exceptions import BadRequestError, InvalidCredentialsError, UnauthorizedError
from backend.utils.passwords import hash_password, validate_password_strength, verify_password

logger = logging.getLogger(__name__)


class AuthError(UnauthorizedError):
    """Raised when a token cannot be decoded or has expired."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Service responsible for account creation, login and JWT issuance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------
    async def register_user(self, email: str, password: str, name: str | None = None) -> User:
        """Create a new user with the provided credentials."""
        email = normalize_email(email)
        validate_password_strength(password)

        existing = await self.db.execute(select(User.user_id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise BadRequestError("An account with this email already exists")

        user = User(
            user_id=uuid.uuid4(),
            email=email,
            name=(name or email.split("@")[0]).strip(),
            password_hash=hash_password(password),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise BadRequestError("An account with this email already exists") from exc

        await self.db.refresh(user)
        logger.info("Created user %s via credential signup", user.user_id)
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """Return the user for valid credentials and stamp the login date."""
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        user = result.scalar_one_or_none()
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        user.last_login_date = datetime.now(UTC)
        await self.db.commit()
        return user

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    def create_access_token(self, user: User) -> tuple[str, int]:
        expires_in = self.settings.access_token_exp_minutes * 60
        expire = datetime.now(UTC) + timedelta(seconds=expires_in)
        payload = {
            "sub": str(user.user_id),
            "email": user.email,
            "exp": int(expire.timestamp()),
        }
        token = jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)
        return token, expires_in

    def decode_access_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, self.settings.secret_key, algorithms=[self.settings.jwt_algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token") from exc

    async def get_user_from_token(self, token: str) -> User:
        payload = self.decode_access_token(token)
        try:
            user_id = uuid.UUID(str(payload.get("sub")))
        except ValueError as exc:
            raise AuthError("invalid_token") from exc

        user = await self.db.get(User, user_id)
        if not user:
            raise AuthError("invalid_token")
        return user
