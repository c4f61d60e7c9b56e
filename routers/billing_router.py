"""
Billing Router - API endpoints for Stripe billing integration
Webhook is defined FIRST to avoid middleware conflicts
"""

import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import get_current_user
from backend.utils.responses import result_response
from config.settings import settings
from database import get_db
from models.billing import CreateSubscriptionRequest
from services.billing_service import BillingService

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/billing", tags=["billing"])


def _webhook_ack(ok: bool, **extra) -> JSONResponse:
    # Always 200 so Stripe does not retry
    return JSONResponse(status_code=200, content={"ok": ok, "received": True, **extra})


# WEBHOOK ENDPOINT - MUST BE DEFINED FIRST TO AVOID MIDDLEWARE CONFLICTS
@billing_router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Stripe webhook events with signature verification.

    Only verified events are processed to prevent spoofing attacks.
    Always returns 200 OK to Stripe to prevent retries.
    """
    try:
        webhook_secret = settings.stripe_webhook_secret
        if not webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
            return _webhook_ack(False, error="Webhook secret not configured")

        # Raw body is required for signature verification
        payload = await request.body()
        stripe_signature = request.headers.get("stripe-signature")
        if not stripe_signature:
            logger.error("Missing Stripe-Signature header")
            return _webhook_ack(False, error="Missing signature header")

        try:
            event = stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {e}")
            return _webhook_ack(False, error="Invalid webhook signature")
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            return _webhook_ack(False, error="Invalid payload format")

        result = await BillingService(db).process_webhook(event)
        return _webhook_ack(not result.get("is_error", True), event_type=event.type)

    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        return _webhook_ack(False, error=str(e))


@billing_router.get("/subscription")
async def get_subscription(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Current subscription with derived state (days remaining, past due, cancel pending)."""
    result = await BillingService(db).get_subscription(user)
    return result_response(result)


@billing_router.post("/create-subscription")
async def create_subscription(
    body: CreateSubscriptionRequest,
    user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await BillingService(db).create_subscription(user, body.tier_id, body.interval)
    return result_response(result)


@billing_router.post("/cancel-subscription")
async def cancel_subscription(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await BillingService(db).cancel_subscription(user)
    return result_response(result)


@billing_router.post("/resume-subscription")
async def resume_subscription(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await BillingService(db).resume_subscription(user)
    return result_response(result)


@billing_router.get("/invoices")
async def list_invoices(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await BillingService(db).list_invoices(user)
    return result_response(result)


@billing_router.get("/payment-methods")
async def list_payment_methods(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await BillingService(db).list_payment_methods(user)
    return result_response(result)
