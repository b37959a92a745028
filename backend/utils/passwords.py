"""Password hashing utilities using bcrypt."""
from __future__ import annotations

import bcrypt

from backend.utils.exceptions import BadRequestError

MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(BadRequestError):
    """Raised when a password fails strength validation."""


def validate_password_strength(password: str) -> None:
    """Require at least 8 characters, mixed case and one digit.

    Raises:
        PasswordValidationError: If any requirement is not met.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")

    if password.lower() == password or password.upper() == password:
        raise PasswordValidationError("Password must include both uppercase and lowercase letters.")

    if not any(char.isdigit() for char in password):
        raise PasswordValidationError("Password must include at least one number.")


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False
