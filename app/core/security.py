"""JWT helpers for the chat API.

Tokens are issued by the account service; this module only needs to verify
them. create_access_token exists for local tooling and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from app.config import Settings


class InvalidTokenError(Exception):
    """Token is missing, malformed, expired or carries no user id."""


def create_access_token(
    user_id: int,
    settings: Settings,
    expires_in: timedelta = timedelta(days=7),
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify a token's signature and expiry.

    Raises:
        InvalidTokenError: If verification fails
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from e


def user_id_from_claims(claims: dict[str, Any]) -> int:
    """Extract the user id from the "id" claim, falling back to "sub"."""
    raw: Optional[Any] = claims.get("id", claims.get("sub"))
    if raw is None:
        raise InvalidTokenError("Token carries no user id")
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise InvalidTokenError("Token user id is not an integer") from e
