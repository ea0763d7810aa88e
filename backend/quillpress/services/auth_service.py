# @TASK P4-T4.1 - JWT token verification

"""JWT authentication seam for QuillPress.

Login and token issuance live outside this service; here tokens are
only verified. ``create_access_token`` is kept for tooling and tests.

Two FastAPI dependencies are provided:

- :func:`get_current_user` -- the caller must be signed in (401 otherwise).
- :func:`get_optional_user` -- anonymous callers get ``None``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from quillpress.config import Settings, get_settings

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=True)
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Claims to encode in the token (must include ``sub`` and ``user_id``).
        expires_delta: Custom expiration timedelta. Falls back to config default.
        settings: Optional settings override (useful for testing).

    Returns:
        Encoded JWT string.
    """
    if settings is None:
        settings = get_settings()

    to_encode = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(
    token: str,
    *,
    settings: Settings | None = None,
) -> dict:
    """Decode and verify a JWT token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    if settings is None:
        settings = get_settings()

    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def _user_from_token(token: str) -> dict | None:
    """Return the user context carried by an access token, or None if unusable."""
    try:
        payload = verify_token(token)
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None

    username: str | None = payload.get("sub")
    user_id = payload.get("user_id")
    if username is None or user_id is None:
        return None

    return {
        "username": username,
        "user_id": user_id,
        "name": payload.get("name") or username,
    }


async def get_current_user(
    token: str = Depends(oauth2_scheme),
) -> dict:
    """FastAPI dependency that requires a valid Bearer token.

    Returns a dict with ``username``, ``user_id`` and ``name``.
    """
    user = _user_from_token(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
) -> dict | None:
    """FastAPI dependency for public endpoints that behave differently when signed in.

    A missing or invalid token means an anonymous caller.
    """
    if not token:
        return None
    user = _user_from_token(token)
    if user is None:
        logger.debug("Ignoring invalid bearer token on public endpoint")
    return user
