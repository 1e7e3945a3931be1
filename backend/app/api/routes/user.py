"""
User Routes

Profile read/update and the usage ledger endpoints for the current user.
"""

import logging

from fastapi import APIRouter

from app.api.dependencies import (
    CurrentUserDep,
    UsageLedgerDep,
    UserProfileRepoDep,
)
from app.domain.models import AuthenticatedUser, UserProfile, UserProfileUpdate


logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================

class ProfileResponse(UserProfile):
    """Profile plus this month's generation count."""
    free_tries_used: int = 0


async def _ensure_profile(user: AuthenticatedUser, profiles: UserProfileRepoDep) -> UserProfile:
    profile, created = await profiles.get_or_create(
        user.id,
        email=user.email,
        full_name=user.full_name,
        avatar_url=user.avatar_url,
    )
    if created:
        logger.info(f"Created profile for user {user.id}")
    return profile


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/user/profile", response_model=ProfileResponse)
async def get_profile(
    user: CurrentUserDep,
    profiles: UserProfileRepoDep,
    ledger: UsageLedgerDep,
):
    """Get the current user's profile, creating it from the token claims on first access."""
    profile = await _ensure_profile(user, profiles)
    usage = await ledger.usage_snapshot(user.id)
    return ProfileResponse(**profile.model_dump(), free_tries_used=usage.generations_used)


@router.patch("/user/profile", response_model=ProfileResponse)
async def update_profile(
    data: UserProfileUpdate,
    user: CurrentUserDep,
    profiles: UserProfileRepoDep,
    ledger: UsageLedgerDep,
):
    """Update the display name or avatar."""
    await _ensure_profile(user, profiles)
    profile = await profiles.update(user.id, data)
    usage = await ledger.usage_snapshot(user.id)
    return ProfileResponse(**profile.model_dump(), free_tries_used=usage.generations_used)


@router.get("/user/can-generate")
async def can_generate(user: CurrentUserDep, ledger: UsageLedgerDep):
    return {"can_generate": await ledger.can_generate(user.id), "user_id": user.id}


@router.post("/user/increment-usage")
async def increment_usage(user: CurrentUserDep, ledger: UsageLedgerDep):
    """Count one generation for the current month. Not idempotent."""
    count = await ledger.record_generation(user.id)
    return {"success": True, "new_usage_count": count}
