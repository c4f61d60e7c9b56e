"""
Unit tests for subscription derivations
"""
from datetime import datetime, timedelta, timezone

from backend.billing.subscription_state import (
    Subscription,
    days_remaining,
    is_active,
    is_cancel_pending,
    is_past_due,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_days_remaining_rounds_up():
    subscription = {"status": "active", "currentPeriodEnd": (NOW + timedelta(days=2, hours=1)).isoformat()}
    assert days_remaining(subscription, now=NOW) == 3


def test_days_remaining_exact_days():
    subscription = Subscription(status="active", current_period_end=NOW + timedelta(days=10))
    assert days_remaining(subscription, now=NOW) == 10


def test_days_remaining_negative_after_lapse():
    subscription = {"status": "past_due", "current_period_end": NOW - timedelta(days=2, hours=12)}
    assert days_remaining(subscription, now=NOW) == -2


def test_days_remaining_accepts_epoch_seconds():
    subscription = {"status": "active", "current_period_end": int((NOW + timedelta(days=1)).timestamp())}
    assert days_remaining(subscription, now=NOW) == 1


def test_days_remaining_naive_datetimes_are_utc():
    subscription = {"status": "active", "current_period_end": datetime(2024, 3, 5, 12, 0)}
    assert days_remaining(subscription, now=datetime(2024, 3, 1, 12, 0)) == 4


def test_days_remaining_absent():
    assert days_remaining(None) is None
    assert days_remaining({"status": "active"}) is None


def test_status_predicates():
    assert is_past_due({"status": "past_due"}) is True
    assert is_past_due({"status": "active"}) is False
    assert is_past_due(None) is False

    assert is_cancel_pending({"status": "active", "cancelAtPeriodEnd": True}) is True
    assert is_cancel_pending(Subscription(status="active")) is False
    assert is_cancel_pending(None) is False

    assert is_active({"status": "trialing"}) is True
    assert is_active({"status": "active"}) is True
    assert is_active({"status": "canceled"}) is False
    assert is_active(None) is False


def test_subscription_as_dict_includes_derived_fields():
    subscription = Subscription(
        id="sub_123",
        status="active",
        current_period_start=NOW,
        current_period_end=NOW + timedelta(days=30),
        cancel_at_period_end=True,
        tier="smart",
    )
    data = subscription.as_dict()
    assert data["id"] == "sub_123"
    assert data["isCancelPending"] is True
    assert data["isActive"] is True
    assert data["isPastDue"] is False
    assert data["currentPeriodEnd"] == (NOW + timedelta(days=30)).isoformat()
