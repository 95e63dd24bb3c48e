"""JWT creation/verification for identifying the requesting user."""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.core.config import settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(sub: str | int, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Create a JWT access token with sub (user id) and exp."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, exp, iat).
    Raises jwt.PyJWTError on invalid or expired token.
    """
    return jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
    )


def user_id_from_token(token: str) -> int | None:
    """Return the integer user id carried in a token, or None when the token is unusable."""
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
