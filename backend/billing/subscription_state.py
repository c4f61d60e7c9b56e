"""
Read-only projections over a mirrored Stripe subscription.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

ACTIVE_STATUSES = ("active", "trialing")
SECONDS_PER_DAY = 86400


@dataclass
class Subscription:
    """Subscription as formatted from the Stripe object (see BillingService.format_subscription)."""
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    id: Optional[str] = None
    tier: Optional[str] = None
    interval: str = "month"
    amount: float = 0
    currency: str = "usd"

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "currentPeriodStart": self.current_period_start.isoformat() if self.current_period_start else None,
            "currentPeriodEnd": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancelAtPeriodEnd": self.cancel_at_period_end,
            "interval": self.interval,
            "tier": self.tier,
            "amount": self.amount,
            "currency": self.currency,
            "daysRemaining": days_remaining(self),
            "isPastDue": is_past_due(self),
            "isCancelPending": is_cancel_pending(self),
            "isActive": is_active(self),
        }


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _field(subscription: Any, snake: str, camel: str, default=None):
    if isinstance(subscription, dict):
        return subscription.get(snake, subscription.get(camel, default))
    return getattr(subscription, snake, default)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return _as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def days_remaining(subscription: Any, now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until the current period ends, rounded up.

    Returns None without a subscription or period end. The result is negative
    once the period has lapsed; callers display that as overdue.
    """
    if not subscription:
        return None

    period_end = _parse_datetime(_field(subscription, "current_period_end", "currentPeriodEnd"))
    if period_end is None:
        return None

    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return math.ceil((period_end - now).total_seconds() / SECONDS_PER_DAY)


def is_past_due(subscription: Any) -> bool:
    return bool(subscription) and _field(subscription, "status", "status") == "past_due"


def is_cancel_pending(subscription: Any) -> bool:
    return bool(subscription) and bool(
        _field(subscription, "cancel_at_period_end", "cancelAtPeriodEnd", False)
    )


def is_active(subscription: Any) -> bool:
    return bool(subscription) and _field(subscription, "status", "status") in ACTIVE_STATUSES
