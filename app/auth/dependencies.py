# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies Clerk session tokens (RS256 JWTs) against Clerk's JWKS.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
import time

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

from app.config import settings
from app.auth.models import AuthUser

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour

ALGORITHM = "RS256"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _fetch_jwks() -> dict:
    """Fetch Clerk's JWKS with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()

    # Return cached if valid
    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        response = httpx.get(settings.clerk_jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        logger.debug(f"Fetched JWKS from {settings.clerk_jwks_url}")
        return _jwks_cache
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Return cached even if expired, as fallback
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _get_signing_key(token: str) -> dict:
    """
    Find the JWK that signed a token, by the `kid` in its header.

    Raises:
        JWTError: If the header is unreadable or no key matches
    """
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")
    if not kid:
        raise JWTError("token header has no kid")

    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key

    raise JWTError(f"no signing key found for kid={kid}")


def decode_token(token: str) -> dict:
    """
    Verify a Clerk session token and return its claims.

    The issuer is always checked; the audience only when CLERK_AUDIENCE is set,
    since Clerk's default session tokens carry no aud claim.
    """
    signing_key = _get_signing_key(token)
    return jwt.decode(
        token,
        signing_key,
        algorithms=[ALGORITHM],
        issuer=settings.CLERK_ISSUER,
        audience=settings.CLERK_AUDIENCE or None,
        options={"verify_aud": bool(settings.CLERK_AUDIENCE)},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Extract and validate the user from a Clerk session token.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Verifies the RS256 signature against Clerk's JWKS
    3. Validates expiry and issuer
    4. Returns an AuthUser with the Clerk user ID

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {str(e)}")

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("JWT token missing 'sub' claim")
        raise _unauthorized("Invalid token: missing user ID")

    logger.debug(f"Authenticated user: {user_id}")
    return AuthUser(
        id=user_id,
        email=payload.get("email") or payload.get("primary_email"),
        session_id=payload.get("sid"),
    )
