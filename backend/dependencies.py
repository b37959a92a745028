"""FastAPI dependencies."""
import logging

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.database import get_db
from backend.models.user import User
from backend.services.auth_service import AuthService, AuthError
from backend.utils.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., user_id, token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


async def get_current_user(
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the current authenticated user via JWT access token.

    Checks for access token in the following order:
    1. HTTP-only cookie (browser clients)
    2. Authorization header (API clients)

    Every failure is reported as 401 ``Unauthorized``.
    """
    settings = get_settings()
    token = request.cookies.get(settings.access_token_cookie_name)
    token_source = "cookie"

    if not token and authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise UnauthorizedError()
        token_source = "header"

    if not token:
        raise UnauthorizedError()

    try:
        user = await AuthService(db).get_user_from_token(token)
    except AuthError as exc:
        logger.debug(f"Rejected {token_source} token {_mask_identifier(token)}: {exc.message}")
        raise UnauthorizedError() from exc

    logger.debug(f"Authenticated user via JWT {token_source}: {user.user_id}")
    return user


async def get_optional_user(
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> User | None:
    """Return the current user if available, otherwise None for auth failures."""
    try:
        return await get_current_user(request, authorization, db)
    except UnauthorizedError:
        return None

