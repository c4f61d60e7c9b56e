"""
Billing service: Stripe webhook mirroring and subscription actions with Stripe mocked
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from config.settings import settings
from crud.notification import NotificationRepository
from crud.user import UserRepository
from services.billing_service import STRIPE_DISABLED, BillingService
from services.connection_manager import ConnectionManager
from tests.fakes import ReadBackManager

PERIOD_START = int(datetime(2024, 3, 1, tzinfo=timezone.utc).timestamp())
PERIOD_END = int(datetime(2024, 4, 1, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def stripe_key(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_pantry")


@pytest.fixture
async def subscriber(test_db):
    return await UserRepository(test_db).create_user({
        "email": "subscriber@example.com",
        "stripe_customer_id": "cus_123",
        "subscription_tier": "smart",
        "subscription_status": "active",
    })


def subscription_object(status="active", tier="smart", cancel_at_period_end=False):
    return {
        "id": "sub_123",
        "customer": "cus_123",
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "metadata": {"tierId": tier},
        "items": {"data": [{
            "price": {
                "unit_amount": 999,
                "currency": "usd",
                "recurring": {"interval": "month"},
                "product": "prod_smart",
            },
        }]},
    }


def event(event_type, obj):
    return {"type": event_type, "data": {"object": obj}}


async def notification_types(db, user_id):
    return [n.type for n in await NotificationRepository(db).list_for_user(user_id)]


async def test_subscription_updated_mirrors_tier_and_period(test_db, subscriber):
    result = await BillingService(test_db, ConnectionManager()).process_webhook(
        event("customer.subscription.updated", subscription_object(tier="pro"))
    )

    assert result == {"data": True, "is_error": False}
    assert subscriber.subscription_tier == "pro"
    assert subscriber.subscription_status == "active"
    assert subscriber.stripe_subscription_id == "sub_123"
    assert subscriber.current_billing_period_end == datetime(2024, 4, 1)
    assert await notification_types(test_db, subscriber.id) == ["subscription_updated"]


async def test_inactive_subscription_update_is_ignored(test_db, subscriber):
    await BillingService(test_db, ConnectionManager()).process_webhook(
        event("customer.subscription.updated", subscription_object(status="incomplete", tier="pro"))
    )

    assert subscriber.subscription_tier == "smart"
    assert await notification_types(test_db, subscriber.id) == []


async def test_subscription_deleted_downgrades_to_free(test_db, subscriber):
    result = await BillingService(test_db, ConnectionManager()).process_webhook(
        event("customer.subscription.deleted", subscription_object(status="canceled"))
    )

    assert result["is_error"] is False
    assert subscriber.subscription_tier == "free"
    assert subscriber.subscription_status == "canceled"
    assert subscriber.stripe_subscription_id is None
    assert subscriber.current_billing_period_end is None
    assert await notification_types(test_db, subscriber.id) == ["subscription_canceled"]


async def test_payment_failed_marks_past_due(test_db, subscriber, stripe_key):
    invoice = {"id": "in_1", "customer": "cus_123", "subscription": "sub_123", "amount_due": 999, "currency": "usd"}

    with patch("stripe.Subscription.retrieve", return_value={"id": "sub_123", "status": "past_due"}) as retrieve:
        await BillingService(test_db, ConnectionManager()).process_webhook(event("invoice.payment_failed", invoice))

    retrieve.assert_called_once_with("sub_123")
    assert subscriber.subscription_status == "past_due"
    assert await notification_types(test_db, subscriber.id) == ["payment_failed"]


async def test_invoice_paid_notifies(test_db, subscriber):
    invoice = {"id": "in_2", "number": "PV-0002", "customer": "cus_123", "amount_paid": 999, "currency": "usd"}

    await BillingService(test_db, ConnectionManager()).process_webhook(event("invoice.paid", invoice))

    [notification] = await NotificationRepository(test_db).list_for_user(subscriber.id)
    assert notification.type == "invoice_paid"
    assert "9.99 USD" in notification.message
    assert "PV-0002" in notification.message


async def test_unknown_customer_is_acknowledged(test_db):
    obj = subscription_object()
    obj["customer"] = "cus_missing"

    result = await BillingService(test_db, ConnectionManager()).process_webhook(
        event("customer.subscription.deleted", obj)
    )

    assert result == {"data": True, "is_error": False}


async def test_unhandled_event_type(test_db):
    result = await BillingService(test_db, ConnectionManager()).process_webhook(event("charge.refunded", {}))
    assert result == {"data": False, "is_error": False}


async def test_stripe_disabled_without_secret_key(test_db, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", None)

    result = await BillingService(test_db).list_prices()

    assert result["is_error"] is True
    assert result["code"] == STRIPE_DISABLED


async def test_list_prices_adds_discounts(test_db, stripe_key):
    prices = {"data": [
        {"id": "price_m", "unit_amount": 999, "currency": "usd", "recurring": {"interval": "month"},
         "product": {"id": "prod_smart", "name": "Smart Pantry", "metadata": {"tier": "smart"}}},
        {"id": "price_y", "unit_amount": 9999, "currency": "usd", "recurring": {"interval": "year"},
         "product": {"id": "prod_smart", "name": "Smart Pantry", "metadata": {"tier": "smart"}}},
    ]}

    with patch("stripe.Price.list", return_value=prices):
        result = await BillingService(test_db).list_prices()

    yearly = {p["id"]: p for p in result["data"]}["price_y"]
    assert yearly["discount_percentage"] == 17
    assert yearly["product"]["metadata"] == {"tier": "smart"}


async def test_cancel_subscription_sets_cancel_at_period_end(test_db, subscriber, stripe_key):
    subscriber.stripe_subscription_id = "sub_123"

    with patch(
        "stripe.Subscription.modify",
        return_value=subscription_object(cancel_at_period_end=True),
    ) as modify:
        result = await BillingService(test_db).cancel_subscription(subscriber)

    modify.assert_called_once_with("sub_123", cancel_at_period_end=True)
    assert result["data"]["isCancelPending"] is True
    assert result["data"]["tier"] == "smart"
    assert result["data"]["amount"] == 9.99


async def test_cancel_without_subscription(test_db, subscriber, stripe_key):
    result = await BillingService(test_db).cancel_subscription(subscriber)
    assert result["is_error"] is True
    assert result["status"] == 404


async def stored_tier(session, user_id):
    return (await UserRepository(session).get_user_by_id(user_id)).subscription_tier


async def test_webhook_tier_change_is_committed_before_push(db_sessions):
    manager = ReadBackManager(db_sessions, stored_tier)
    async with db_sessions() as db:
        await UserRepository(db).create_user({
            "email": "subscriber@example.com",
            "stripe_customer_id": "cus_123",
            "subscription_tier": "smart",
        })
        await db.commit()

        await BillingService(db, manager).process_webhook(
            event("customer.subscription.updated", subscription_object(tier="pro"))
        )

    assert manager.seen == [("notification", "pro")]
