"""
Stripe Webhook Handler

Verifies Stripe webhook deliveries and hands them to the subscription
reconciler. Processing is idempotent: applied event IDs are recorded in
the same transaction as their effects.

Handled events:
- checkout.session.completed: Activate the purchased plan
- customer.subscription.created / updated: Sync plan, status and period
- customer.subscription.deleted: Downgrade to free
- invoice.payment_failed: Mark past_due
- payment_intent.succeeded: Grant the one-time pro unlock
- payment_intent.payment_failed: Record the failed unlock payment
"""

import logging

from fastapi import APIRouter, Request, HTTPException, status

from app.api.dependencies import (
    ReconcilerDep,
    StripeServiceDep,
    WebhookEventRepoDep,
)
from app.infrastructure.exceptions import ReconciliationError
from app.infrastructure.payments.stripe_service import StripeServiceError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_service: StripeServiceDep,
    reconciler: ReconcilerDep,
    events: WebhookEventRepoDep,
):
    """
    Handle Stripe webhook events.

    Returns 200 once the event is applied or deliberately ignored. Any
    failure while applying it returns 500 so Stripe redelivers.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.error("Missing stripe-signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    event_id = event.get("id")
    event_type = event.get("type", "")

    if event_id and await events.is_processed(event_id):
        logger.info(f"Event {event_id} already processed, skipping")
        return {"received": True, "duplicate": True}

    try:
        await reconciler.handle_event(event)
    except ReconciliationError as e:
        logger.error(f"Error processing webhook {event_type} ({event_id}): {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed"
        )

    if event_id:
        await events.mark_processed(event_id, event_type)

    return {"received": True}
