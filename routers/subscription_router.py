"""
Subscription Router - public tier catalog and Stripe prices
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.billing.entitlements import SUBSCRIPTION_TIERS
from backend.utils.responses import success_response, error_response
from database import get_db
from services.billing_service import STRIPE_DISABLED, BillingService

subscription_router = APIRouter(prefix="/api/subscription", tags=["subscription"])


@subscription_router.get("/tiers")
async def list_tiers():
    return success_response([asdict(tier) for tier in SUBSCRIPTION_TIERS])


@subscription_router.get("/prices")
async def list_prices(db: AsyncSession = Depends(get_db)):
    """
    Active Stripe prices with yearly discount fields. When Stripe is not
    configured the client falls back to its built-in price table.
    """
    result = await BillingService(db).list_prices()
    if result.get("code") == STRIPE_DISABLED:
        return error_response(
            STRIPE_DISABLED,
            status=503,
            message=result.get("error", "Stripe is not configured"),
            data={"stripeDisabled": True},
        )
    if result.get("is_error"):
        return error_response("PRICES_UNAVAILABLE", status=502, message=result.get("error", "Unknown error"))
    return success_response(result["data"])
