"""
FastAPI authentication dependencies.

Students authenticate with a bearer token; admin endpoints use the shared
X-Admin-Token header.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from entrance.core.config import settings
from entrance.core.error_responses import (
    ErrorMessages,
    raise_not_configured,
    raise_unauthorized,
)
from entrance.models import get_db, User
from .security import decode_token, verify_token_type

# Missing credentials are reported as 401 by get_current_user, not by the scheme
security = HTTPBearer(auto_error=False)


def _decode_and_validate_token(token: str) -> int:
    """
    Decode and validate an access token, returning the user_id.

    Raises:
        HTTPException: 401 if token is invalid, wrong type, or missing user_id
    """
    payload = decode_token(token)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    if not verify_token_type(payload, "access"):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    user_id = payload.get("user_id")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)

    return user_id


def _get_user_or_401(db: Session, user_id: int) -> User:
    """
    Get a user by ID or raise 401 Unauthorized.

    Raises:
        HTTPException: 401 if user not found
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise_unauthorized(ErrorMessages.USER_NOT_FOUND_AUTH)
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid, or the user
            is unknown
    """
    if credentials is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)
    user_id = _decode_and_validate_token(credentials.credentials)
    return _get_user_or_401(db, user_id)


def _verify_secret_header(
    header_value: str,
    expected_secret: str | None,
    not_configured_detail: str,
    invalid_detail: str,
) -> bool:
    """
    Verify a secret header value against an expected secret.

    Uses constant-time comparison.

    Raises:
        HTTPException: 500 if secret not configured, 401 if invalid
    """
    if not expected_secret:
        raise_not_configured(not_configured_detail)

    if not secrets.compare_digest(header_value, expected_secret):
        raise_unauthorized(invalid_detail, include_www_authenticate=False)

    return True


def verify_admin_token(x_admin_token: str = Header(...)) -> bool:
    """
    Verify admin token from the X-Admin-Token request header.

    Raises:
        HTTPException: If token is invalid or not configured
    """
    return _verify_secret_header(
        header_value=x_admin_token,
        expected_secret=settings.ADMIN_TOKEN,
        not_configured_detail=ErrorMessages.ADMIN_TOKEN_NOT_CONFIGURED,
        invalid_detail=ErrorMessages.ADMIN_TOKEN_INVALID,
    )
