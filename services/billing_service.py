"""
Billing Service - Stripe subscriptions, price catalog and webhook mirroring
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from backend.billing.entitlements import normalize_tier_id, tier_for
from backend.billing.pricing import INTERVAL_TO_STRIPE, price_catalog_with_discounts
from backend.billing.subscription_state import ACTIVE_STATUSES, Subscription
from config.settings import settings, TIER_FREE
from crud.user import UserRepository
from services.connection_manager import ConnectionManager
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

STRIPE_DISABLED = "stripe_disabled"
FAILED_PAYMENT_STATUSES = ("past_due", "unpaid")


def _get(obj: Any, key: str, default=None):
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    # Item access first: "items" would otherwise resolve to a method
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError):
        return getattr(obj, key, default)


def _plain(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return {}


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    # Stored naive UTC, like the rest of the schema
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def _first_item(subscription: Any):
    items = _get(_get(subscription, "items"), "data") or []
    return items[0] if items else None


def _period(subscription: Any, field: str) -> Optional[datetime]:
    # Newer API versions moved billing periods onto the subscription item
    value = _get(subscription, field) or _get(_first_item(subscription), field)
    return _timestamp(value)


def _format_price(price: Any) -> dict:
    product = _get(price, "product")
    if isinstance(product, str):
        product = {"id": product}
    return {
        "id": _get(price, "id"),
        "unit_amount": _get(price, "unit_amount"),
        "currency": _get(price, "currency", "usd"),
        "recurring": {"interval": _get(_get(price, "recurring"), "interval")},
        "product": {
            "id": _get(product, "id"),
            "name": _get(product, "name"),
            "description": _get(product, "description"),
            "metadata": _plain(_get(product, "metadata")),
        },
    }


def _format_invoice(invoice: Any) -> dict:
    due_date = _timestamp(_get(invoice, "due_date"))
    created = _timestamp(_get(invoice, "created"))
    return {
        "id": _get(invoice, "id"),
        "number": _get(invoice, "number"),
        "status": _get(invoice, "status"),
        "created": created.isoformat() if created else None,
        "dueDate": due_date.isoformat() if due_date else None,
        "amount": (_get(invoice, "amount_paid") or 0) / 100,
        "currency": _get(invoice, "currency"),
        "pdf": _get(invoice, "invoice_pdf"),
    }


def _format_payment_method(payment_method: Any) -> dict:
    card = _get(payment_method, "card")
    return {
        "id": _get(payment_method, "id"),
        "brand": _get(card, "brand"),
        "last4": _get(card, "last4"),
        "expMonth": _get(card, "exp_month"),
        "expYear": _get(card, "exp_year"),
    }


class BillingService:
    """
    Service class for handling billing-related business logic.
    Stripe is the source of truth; subscription state is mirrored onto the
    user row by the webhook handlers and users are notified over /api/ws.
    """

    def __init__(self, db: AsyncSession, manager: Optional[ConnectionManager] = None):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
            manager: Connection registry used to push notifications
        """
        self.db = db
        self.users = UserRepository(db)
        self.notifications = NotificationService(db, manager)

    @property
    def stripe_enabled(self) -> bool:
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key
            return True
        return False

    def _disabled(self, action: str) -> dict:
        logger.warning(f"STRIPE_SECRET_KEY is not set. Cannot {action}.")
        return {"error": f"Stripe is not configured. Cannot {action}.", "code": STRIPE_DISABLED, "status": 503, "is_error": True}

    async def list_prices(self):
        """
        Active recurring prices with their product, yearly prices annotated with
        discount fields.

        Returns:
            Normalized response: {"data": [price, ...], "is_error": False} or
            {"error": str, "code": "stripe_disabled", "is_error": True}
        """
        if not self.stripe_enabled:
            return self._disabled("list prices")

        try:
            prices = stripe.Price.list(active=True, type="recurring", expand=["data.product"], limit=100)
            formatted = [_format_price(price) for price in _get(prices, "data") or []]
            return {"data": price_catalog_with_discounts(formatted), "is_error": False}
        except Exception as e:
            logger.error(f"Failed to list Stripe prices: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    def format_subscription(self, subscription: Any) -> Subscription:
        item = _first_item(subscription)
        price = _get(item, "price")
        metadata = _plain(_get(subscription, "metadata"))
        product = _get(price, "product")
        tier = metadata.get("tierId") or _plain(_get(product, "metadata")).get("tier")

        return Subscription(
            id=_get(subscription, "id"),
            status=_get(subscription, "status"),
            current_period_start=_period(subscription, "current_period_start"),
            current_period_end=_period(subscription, "current_period_end"),
            cancel_at_period_end=bool(_get(subscription, "cancel_at_period_end", False)),
            tier=normalize_tier_id(tier) if tier else None,
            interval=_get(_get(price, "recurring"), "interval") or "month",
            amount=(_get(price, "unit_amount") or 0) / 100,
            currency=_get(price, "currency") or "usd",
        )

    async def get_subscription(self, user):
        if not self.stripe_enabled:
            return self._disabled("fetch subscription")
        if not user.stripe_subscription_id:
            return {"data": None, "is_error": False}

        try:
            subscription = stripe.Subscription.retrieve(user.stripe_subscription_id)
            return {"data": self.format_subscription(subscription).as_dict(), "is_error": False}
        except Exception as e:
            logger.error(f"Failed to retrieve subscription for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def _ensure_customer(self, user) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer = stripe.Customer.create(email=user.email, metadata={"userId": str(user.id)})
        await self.users.update_user(user, {"stripe_customer_id": customer.id})
        logger.info(f"Created Stripe customer for user {user.id}: {customer.id}")
        return customer.id

    async def create_subscription(self, user, tier_id: str, interval: str):
        """
        Start an incomplete subscription for the tier and return the client
        secret needed to confirm the first payment.

        Returns:
            Normalized response: {"data": {"subscriptionId", "clientSecret"}, "is_error": False}
            or {"error": str, "is_error": True}
        """
        if not self.stripe_enabled:
            return self._disabled("create subscription")

        tier_id = normalize_tier_id(tier_id)
        if tier_id == TIER_FREE or interval not in INTERVAL_TO_STRIPE:
            return {"error": f"Invalid tier {tier_id} or interval {interval}", "is_error": True}

        price_id = settings.price_ids().get(tier_id, {}).get(interval)
        if not price_id:
            return {"error": f"No price ID configured for tier {tier_id} with interval {interval}", "is_error": True}

        try:
            customer_id = await self._ensure_customer(user)
            subscription = stripe.Subscription.create(
                customer=customer_id,
                items=[{"price": price_id}],
                payment_behavior="default_incomplete",
                payment_settings={"save_default_payment_method": "on_subscription"},
                expand=["latest_invoice.payment_intent"],
                metadata={"tierId": tier_id, "userId": str(user.id)},
            )
            payment_intent = _get(_get(subscription, "latest_invoice"), "payment_intent")
            client_secret = _get(payment_intent, "client_secret")
            if not client_secret:
                return {"error": "No client secret found in the payment intent", "is_error": True}

            logger.info(f"Created subscription for customer {customer_id}: {subscription.id}")
            return {"data": {"subscriptionId": subscription.id, "clientSecret": client_secret}, "is_error": False}
        except Exception as e:
            logger.error(f"Failed to create subscription for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def _set_cancel_at_period_end(self, user, cancel: bool):
        action = "cancel subscription" if cancel else "resume subscription"
        if not self.stripe_enabled:
            return self._disabled(action)
        if not user.stripe_subscription_id:
            return {"error": "No active subscription", "status": 404, "is_error": True}

        try:
            subscription = stripe.Subscription.modify(user.stripe_subscription_id, cancel_at_period_end=cancel)
            logger.info(f"Set cancel_at_period_end={cancel} for subscription {user.stripe_subscription_id}")
            return {"data": self.format_subscription(subscription).as_dict(), "is_error": False}
        except Exception as e:
            logger.error(f"Failed to {action} for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def cancel_subscription(self, user):
        """Cancel at the end of the current period; access continues until then."""
        return await self._set_cancel_at_period_end(user, True)

    async def resume_subscription(self, user):
        return await self._set_cancel_at_period_end(user, False)

    async def list_invoices(self, user, limit: int = 10):
        if not self.stripe_enabled:
            return self._disabled("list invoices")
        if not user.stripe_customer_id:
            return {"data": [], "is_error": False}

        try:
            invoices = stripe.Invoice.list(customer=user.stripe_customer_id, limit=limit)
            return {"data": [_format_invoice(i) for i in _get(invoices, "data") or []], "is_error": False}
        except Exception as e:
            logger.error(f"Failed to list invoices for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def list_payment_methods(self, user):
        if not self.stripe_enabled:
            return self._disabled("list payment methods")
        if not user.stripe_customer_id:
            return {"data": [], "is_error": False}

        try:
            methods = stripe.PaymentMethod.list(customer=user.stripe_customer_id, type="card")
            return {"data": [_format_payment_method(m) for m in _get(methods, "data") or []], "is_error": False}
        except Exception as e:
            logger.error(f"Failed to list payment methods for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def process_webhook(self, event: Any):
        """
        Mirror a verified Stripe event onto the user and notify them.

        Args:
            event: Verified Stripe Event object (from webhook signature verification)

        Returns:
            Normalized response: {"data": handled, "is_error": False} or {"error": str(e), "is_error": True}
        """
        handlers = {
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "customer.subscription.trial_will_end": self._on_trial_will_end,
            "invoice.payment_failed": self._on_payment_failed,
            "invoice.paid": self._on_invoice_paid,
        }

        try:
            event_type = _get(event, "type")
            logger.info(f"Processing Stripe webhook event: {event_type}")

            handler = handlers.get(event_type)
            if handler is None:
                logger.info(f"Ignoring unhandled Stripe event type: {event_type}")
                return {"data": False, "is_error": False}

            await handler(_get(_get(event, "data"), "object"))
            return {"data": True, "is_error": False}
        except Exception as e:
            logger.error(f"Error processing webhook: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def _user_for_customer(self, customer_id: Optional[str]):
        user = await self.users.get_user_by_stripe_customer_id(customer_id)
        if user is None:
            logger.warning(f"No user found with Stripe customer ID: {customer_id}")
        return user

    def _subscription_tier(self, subscription: Any) -> str:
        tier = _plain(_get(subscription, "metadata")).get("tierId")
        if tier:
            return normalize_tier_id(tier)

        product = _get(_get(_first_item(subscription), "price"), "product")
        if isinstance(product, str):
            product = stripe.Product.retrieve(product)

        tier = _plain(_get(product, "metadata")).get("tier")
        if tier:
            return normalize_tier_id(tier)

        name = (_get(product, "name") or "").lower()
        if "family pantry pro" in name:
            return normalize_tier_id("pro")
        if "smart pantry" in name:
            return normalize_tier_id("smart")
        return TIER_FREE

    async def _on_subscription_changed(self, subscription: Any):
        status = _get(subscription, "status")
        if status not in ACTIVE_STATUSES:
            logger.info(f"Ignoring subscription with status: {status}")
            return

        user = await self._user_for_customer(_get(subscription, "customer"))
        if user is None:
            return

        tier = tier_for(self._subscription_tier(subscription))
        await self.users.update_user(user, {
            "stripe_subscription_id": _get(subscription, "id"),
            "subscription_status": status,
            "subscription_tier": tier.id,
            "current_billing_period_start": _period(subscription, "current_period_start"),
            "current_billing_period_end": _period(subscription, "current_period_end"),
        })
        await self.db.commit()
        await self.notifications.send_notification_to_user(
            user.id, "subscription_updated", f"Your subscription has been updated to {tier.name}."
        )
        logger.info(f"Updated subscription for user {user.id} to tier {tier.id}")

    async def _on_subscription_deleted(self, subscription: Any):
        user = await self._user_for_customer(_get(subscription, "customer"))
        if user is None:
            return

        await self.users.update_user(user, {
            "stripe_subscription_id": None,
            "subscription_status": "canceled",
            "subscription_tier": TIER_FREE,
            "current_billing_period_start": None,
            "current_billing_period_end": None,
        })
        await self.db.commit()
        await self.notifications.send_notification_to_user(
            user.id,
            "subscription_canceled",
            "Your subscription has been canceled. You have been downgraded to the Free tier.",
        )
        logger.info(f"Subscription canceled for user {user.id}")

    async def _on_trial_will_end(self, subscription: Any):
        user = await self._user_for_customer(_get(subscription, "customer"))
        if user is None:
            return

        trial_end = _timestamp(_get(subscription, "trial_end"))
        price = _get(_first_item(subscription), "price")
        amount = (_get(price, "unit_amount") or 0) / 100
        currency = (_get(price, "currency") or "usd").upper()
        await self.notifications.send_notification_to_user(
            user.id,
            "trial_ending",
            f"Your free trial will end on {trial_end.date().isoformat() if trial_end else 'soon'}. "
            f"You will be charged {amount:.2f} {currency} afterwards unless you cancel.",
        )

    async def _on_payment_failed(self, invoice: Any):
        user = await self._user_for_customer(_get(invoice, "customer"))
        if user is None:
            return

        subscription_id = _get(invoice, "subscription")
        if subscription_id:
            subscription = stripe.Subscription.retrieve(subscription_id)
            status = _get(subscription, "status")
            if status in FAILED_PAYMENT_STATUSES:
                await self.users.update_user(user, {"subscription_status": status})
                await self.db.commit()

        amount = (_get(invoice, "amount_due") or 0) / 100
        currency = (_get(invoice, "currency") or "usd").upper()
        await self.notifications.send_notification_to_user(
            user.id,
            "payment_failed",
            f"Your payment of {amount:.2f} {currency} has failed. Please update your payment method.",
        )
        logger.info(f"Payment failed for user {user.id}")

    async def _on_invoice_paid(self, invoice: Any):
        user = await self._user_for_customer(_get(invoice, "customer"))
        if user is None:
            return

        amount = (_get(invoice, "amount_paid") or 0) / 100
        currency = (_get(invoice, "currency") or "usd").upper()
        number = _get(invoice, "number") or _get(invoice, "id")
        await self.notifications.send_notification_to_user(
            user.id,
            "invoice_paid",
            f"Your payment of {amount:.2f} {currency} for invoice #{number} has been processed successfully.",
        )
        logger.info(f"Invoice paid for user {user.id}")
