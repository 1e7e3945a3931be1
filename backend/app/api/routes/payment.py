"""
Payment Routes

Legacy one-time pro unlock through a Stripe payment intent.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from app.api.dependencies import CheckoutServiceDep, CurrentUserDep
from app.domain.models import ConfirmPaymentRequest
from app.infrastructure.exceptions import (
    CheckoutError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payment/create-intent")
async def create_payment_intent(user: CurrentUserDep, checkout: CheckoutServiceDep):
    """Create the $4.99 unlock payment intent."""
    try:
        intent = await checkout.create_unlock_payment(user)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except CheckoutError as e:
        logger.error(f"Payment intent creation failed for user {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create payment intent",
        )

    return {
        "clientSecret": intent["client_secret"],
        "paymentIntentId": intent["payment_intent_id"],
    }


@router.post("/payment/confirm")
async def confirm_payment(
    body: ConfirmPaymentRequest,
    user: CurrentUserDep,
    checkout: CheckoutServiceDep,
):
    """Grant pro access once the unlock payment has succeeded."""
    try:
        await checkout.confirm_unlock_payment(user, body.payment_intent_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except CheckoutError as e:
        logger.error(f"Payment confirmation failed for user {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm payment",
        )

    return {"success": True, "message": "Pro access granted"}
