# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Sign-up and sign-in happen in Clerk on the client; these routes only
# describe the caller once they hold a session token.
# =============================================================================

import logging
from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser, UserResponse
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Falls back to what the token says when no profile row exists yet.
    """
    try:
        profile = SupabaseClient.select_one("profiles", {"clerk_user_id": user.id})
    except SupabaseClientError as e:
        logger.warning(f"Could not fetch profile for {user.id}: {e}")
        profile = None

    if profile:
        return UserResponse(
            id=user.id,
            email=profile.get("email") or user.email,
            full_name=profile.get("full_name"),
            created_at=profile.get("created_at"),
            updated_at=profile.get("updated_at"),
        )

    return UserResponse(id=user.id, email=user.email)


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """Check that a stored token is still valid."""
    return {
        "valid": True,
        "user_id": user.id,
        "email": user.email,
    }
