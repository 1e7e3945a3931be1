"""
Checkout Routes

Stripe-hosted checkout and billing portal sessions.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from app.api.dependencies import CheckoutServiceDep, CurrentUserDep
from app.config.settings import get_settings
from app.domain.subscription import (
    CheckoutResponse,
    CreateCheckoutRequest,
    PlanType,
    PortalResponse,
)
from app.infrastructure.exceptions import (
    CheckoutError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)

router = APIRouter()


def _origin(request: Request) -> str:
    return request.headers.get("origin") or get_settings().site_url


@router.post("/checkout", response_model=CheckoutResponse, response_model_by_alias=True)
async def create_checkout(
    body: CreateCheckoutRequest,
    request: Request,
    user: CurrentUserDep,
    checkout: CheckoutServiceDep,
):
    """
    Start a subscription checkout for the pro or premium plan.

    Returns the session ID and the hosted checkout URL.
    """
    if body.plan_type == PlanType.FREE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan type")

    origin = _origin(request)
    try:
        session = await checkout.create_checkout_session(
            user,
            body.plan_type,
            success_url=f"{origin}/dashboard?success=true&plan={body.plan_type.value}",
            cancel_url=f"{origin}/pricing?canceled=true",
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except CheckoutError as e:
        logger.error(f"Checkout failed for user {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create checkout session: {e.message}",
        )

    return CheckoutResponse(session_id=session["id"], url=session.get("url"))


@router.post("/customer-portal", response_model=PortalResponse)
async def create_customer_portal(
    request: Request,
    user: CurrentUserDep,
    checkout: CheckoutServiceDep,
):
    """Open the Stripe billing portal for the current subscriber."""
    try:
        session = await checkout.create_portal_session(user, return_url=f"{_origin(request)}/dashboard")
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except CheckoutError as e:
        logger.error(f"Portal session failed for user {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create customer portal session",
        )

    return PortalResponse(url=session["url"])
