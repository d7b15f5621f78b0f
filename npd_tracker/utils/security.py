"""
Security utilities for the NPD Tracker authentication system.

Provides JWT token creation/verification via python-jose and bcrypt
password hashing.  All configuration is sourced from the application
settings singleton so that secrets are never hard-coded in source files.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from npd_tracker.config import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password helpers
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(data: dict[str, Any]) -> str:
    """Create a signed JWT access token.

    The payload is a copy of *data* plus ``exp`` and ``iat`` claims.  The
    caller sets ``sub`` (the user id as a string), ``rol`` and ``org``.

    Args:
        data: Claims to embed in the token payload.

    Returns:
        A compact JWT string.

    Example::

        token = create_access_token(
            {"sub": str(user.id), "rol": user.rol, "org": user.organization_id}
        )
    """
    settings = get_settings()
    payload = data.copy()
    now = datetime.now(timezone.utc)
    payload["exp"] = now + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    payload["iat"] = now

    return jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT access token.

    Args:
        token: A compact JWT string obtained from ``create_access_token``.

    Returns:
        The decoded payload dictionary.

    Raises:
        ValueError: If the token is invalid, expired, or cannot be decoded.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return payload
    except JWTError as exc:
        logger.debug("JWT verification failed: %s", exc)
        raise ValueError("Invalid or expired token") from exc
