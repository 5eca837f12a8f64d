# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Clerk session token.

    This is the minimal user info available from the token itself,
    without querying the database. `id` is the Clerk user ID (user_...).
    """
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    session_id: Optional[str] = None


class UserResponse(BaseModel):
    """
    Full user response for API endpoints.

    Includes profile data from the profiles table when a row exists.
    """
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
