"""FastAPI dependencies shared by the route modules."""
import logging
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.config import Settings, get_settings
from app.core.security import InvalidTokenError, decode_access_token, user_id_from_claims
from app.database import get_session

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Database session for the current request."""
    yield from get_session()


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    Resolve the authenticated user id from the request.

    The token is read from the Authorization bearer header, or from the
    auth cookie when no header is sent.

    Returns:
        User ID carried by the token

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token not received",
        )

    try:
        claims = decode_access_token(token, settings)
        return user_id_from_claims(claims)
    except InvalidTokenError as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired or invalid",
        )
