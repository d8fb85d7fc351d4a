"""Security primitives for the login flows."""

import base64
import secrets
from functools import cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


@cache
def _dummy_hash() -> str:
    """Hash verified in place of a missing one so every check costs the same."""
    return _password_hasher.hash(generate_secure_token(16))


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token.

    Args:
        length: Number of random bytes to generate (default 32)

    Returns:
        URL-safe base64 encoded token
    """
    return (
        base64.urlsafe_b64encode(secrets.token_bytes(length))
        .decode("utf-8")
        .rstrip("=")
    )


def generate_state() -> str:
    """Generate a cryptographically secure state parameter for CSRF protection.

    Returns:
        URL-safe base64 encoded state (256 bits of entropy)
    """
    return generate_secure_token(32)


def generate_session_id() -> str:
    """Generate an opaque session identifier."""
    return generate_secure_token(32)


def hash_password(password: str) -> str:
    """Hash ``password`` with argon2id."""
    if not password:
        raise ValueError("Password must not be empty")
    return _password_hasher.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    """Return ``True`` if ``password`` matches ``hashed``.

    A missing hash never verifies but still costs a full argon2 check, so
    an unknown account cannot be told apart from a wrong password by timing.
    """
    if not hashed or not password:
        _verify(_dummy_hash(), password or " ")
        return False
    return _verify(hashed, password)


def _verify(hashed: str, password: str) -> bool:
    try:
        return _password_hasher.verify(hashed, password)
    except (VerificationError, InvalidHashError):
        return False
