"""
JWT Session Module
==================

Creation and verification of the session JWTs that identify callers of the
HTTP API. Tokens are issued by the account service; this module verifies them
and can mint them for service-to-service use and tests.

The ``sub`` claim is the user id used throughout the gateway.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, HTTPException, Request, status
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from ..config import Settings

logger = logging.getLogger("socialhub.auth.session")


# =============================================================================
# Exceptions
# =============================================================================

class JWTSessionError(Exception):
    """Base exception for JWT session errors"""
    pass


# =============================================================================
# Token Creation
# =============================================================================

def create_session_jwt(claims: Dict[str, Any], settings: Settings) -> str:
    """
    Create a session JWT with the provided claims.

    Args:
        claims: Claims to include; ``sub`` (user id) is required.
        settings: Application settings holding the secret and expiry.

    Returns:
        Encoded JWT string

    Raises:
        JWTSessionError: If ``sub`` is missing or encoding fails

    Example:
        >>> token = create_session_jwt({"sub": "alice"}, get_settings())
    """
    payload = claims.copy()

    if not payload.get("sub"):
        raise JWTSessionError("Missing required claim: 'sub' (subject/user ID)")

    now = datetime.now(timezone.utc)
    payload.update({
        "iat": now,
        "exp": now + timedelta(minutes=settings.SESSION_JWT_EXPIRY_MINUTES),
        "iss": settings.JWT_ISSUER,
    })

    try:
        return jwt.encode(payload, settings.SESSION_JWT_SECRET, algorithm=settings.SESSION_JWT_ALGORITHM)
    except Exception as e:
        logger.error(f"Failed to create session JWT: {e}", exc_info=True)
        raise JWTSessionError(f"Failed to create session JWT: {str(e)}") from e


# =============================================================================
# Token Verification
# =============================================================================

def verify_session_jwt(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Verify and decode a session JWT.

    Returns:
        Dictionary containing the decoded claims

    Raises:
        HTTPException: 401 for missing, expired or invalid tokens
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        decoded = jwt.decode(
            token,
            settings.SESSION_JWT_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"require": ["exp", "iat", "sub"]},
        )
    except ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("JWT verified", extra={"user_id": decoded.get("sub")})
    return decoded


def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Extract Bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> str:
    """
    FastAPI dependency returning the caller's user id.

    Usage in routes:
        @router.get("/protected")
        async def protected_route(user_id: str = Depends(get_current_user)):
            ...
    """
    token = extract_token_from_header(authorization)
    claims = verify_session_jwt(token, request.app.state.settings)
    return claims["sub"]


__all__ = [
    "create_session_jwt",
    "verify_session_jwt",
    "extract_token_from_header",
    "get_current_user",
    "JWTSessionError",
]
