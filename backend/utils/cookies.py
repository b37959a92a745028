"""HTTP cookie helpers for the session token."""
from fastapi import Response

from backend.config import get_settings


def set_access_token_cookie(response: Response, token: str) -> None:
    """Store the access token in an HTTP-only cookie.

    Browsers send the cookie on every same-site request, so the web client
    never has to handle the token itself. API clients may instead pass it as
    a bearer token.
    """
    settings = get_settings()
    max_age = settings.access_token_exp_minutes * 60

    response.set_cookie(
        key=settings.access_token_cookie_name,
        value=token,
        httponly=True,
        # Plain http only during local development
        secure=settings.environment != "development",
        samesite="lax",
        max_age=max_age,
        expires=max_age,
        path="/",
    )


def clear_access_token_cookie(response: Response) -> None:
    """Remove the access token cookie from the client."""
    settings = get_settings()
    response.delete_cookie(key=settings.access_token_cookie_name, path="/")
