"""
Subscription API Routes

Effective subscription status and manual reconciliation with Stripe.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from app.api.dependencies import CurrentUserDep, ReconcilerDep, StatusServiceDep
from app.domain.subscription import (
    RefreshSubscriptionRequest,
    RefreshSubscriptionResponse,
    SubscriptionStatusView,
)
from app.infrastructure.exceptions import ReconciliationError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subscription/status", response_model=SubscriptionStatusView)
async def get_subscription_status(
    user: CurrentUserDep,
    status_service: StatusServiceDep,
    refresh: bool = False,
):
    """
    Get the current user's effective subscription status.

    Lookup failures yield the free default with ``error`` set.
    """
    return await status_service.get_status(user.id, force_refresh=refresh)


@router.post("/subscription/refresh", response_model=RefreshSubscriptionResponse)
async def refresh_subscription(
    body: RefreshSubscriptionRequest,
    user: CurrentUserDep,
    reconciler: ReconcilerDep,
):
    """
    Re-read the user's subscription from Stripe and apply it locally.

    Recovers a subscription the webhook never delivered, looking it up by
    the stored customer or the user's email.
    """
    if body.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    try:
        return await reconciler.refresh(user.id, email=user.email)
    except ReconciliationError as e:
        logger.error(f"Subscription refresh failed for user {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to refresh subscription",
        )
