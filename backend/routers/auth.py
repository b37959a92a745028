"""Authentication endpoints."""
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.auth import (
    AuthSessionResponse,
    AuthTokenResponse,
    LoginRequest,
    LogoutResponse,
    SessionUser,
    SignupRequest,
    UserInfo,
)
from backend.services import AuthService
from backend.utils.cookies import clear_access_token_cookie, set_access_token_cookie

router = APIRouter()


def _issue_token(auth_service: AuthService, user: User, response: Response) -> AuthTokenResponse:
    """Issue an access token, store it in the session cookie and build the response."""
    access_token, expires_in = auth_service.create_access_token(user)
    set_access_token_cookie(response, access_token)
    return AuthTokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserInfo.model_validate(user),
    )


@router.post("/signup", response_model=AuthTokenResponse, status_code=201)
async def signup(
    request: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthTokenResponse:
    """Create an account and log it in."""
    auth_service = AuthService(db)
    user = await auth_service.register_user(request.email, request.password, request.name)
    return _issue_token(auth_service, user, response)


@router.post("/login", response_model=AuthTokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthTokenResponse:
    """Authenticate via email/password and issue a JWT access token."""
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(request.email, request.password)
    return _issue_token(auth_service, user, response)


@router.get("/session", response_model=AuthSessionResponse)
async def get_session(user: User = Depends(get_current_user)) -> AuthSessionResponse:
    """Return the user behind the current token."""
    return AuthSessionResponse(user=SessionUser(id=user.user_id, email=user.email, name=user.name))


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear the session cookie. Bearer tokens simply expire."""
    clear_access_token_cookie(response)
    return LogoutResponse(success=True)
