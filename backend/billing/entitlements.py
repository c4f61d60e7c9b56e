"""
Subscription tier catalog and usage-limit evaluation.

Everything here is pure and total: lookups for unknown tiers fall back to the
free tier and a limit of 0 always means "unlimited". The functions accept ORM
rows, pydantic models or the camelCase dicts served by /api/user so that the
same gating runs on the server and optimistically on the client.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from config.settings import TIER_FREE, TIER_SMART, TIER_PRO

UNLIMITED = "Unlimited"


@dataclass(frozen=True)
class TierLimits:
    receipt_scans: int
    items_per_receipt: int
    pantry_users: int
    locations: int


@dataclass(frozen=True)
class TierPrice:
    monthly: float
    yearly: float


@dataclass(frozen=True)
class SubscriptionTier:
    id: str
    name: str
    description: str
    features: Tuple[str, ...]
    price: TierPrice
    limits: TierLimits

    @property
    def is_free(self) -> bool:
        return self.id == TIER_FREE


@dataclass(frozen=True)
class ScanAllowance:
    used: int
    total: Union[int, str]
    remaining: Union[int, str]

    @property
    def is_unlimited(self) -> bool:
        return self.total == UNLIMITED

    def as_dict(self) -> dict:
        return {"used": self.used, "total": self.total, "remaining": self.remaining}


SUBSCRIPTION_TIERS: Tuple[SubscriptionTier, ...] = (
    SubscriptionTier(
        id=TIER_FREE,
        name="Free",
        description="Basic pantry management",
        features=(
            "Track up to 50 food items",
            "3 receipt scans per month",
            "50 items per receipt limit",
            "Up to 3 storage locations",
            "Expiry date tracking",
            "Basic inventory management",
        ),
        price=TierPrice(monthly=0, yearly=0),
        limits=TierLimits(receipt_scans=3, items_per_receipt=50, pantry_users=1, locations=3),
    ),
    SubscriptionTier(
        id=TIER_SMART,
        name="Smart Pantry",
        description="Advanced inventory tracking",
        features=(
            "Track unlimited food items",
            "20 receipt scans per month",
            "Unlimited items per receipt",
            "Up to 10 storage locations",
            "Advanced expiry alerts",
            "Price tracking & history",
            "Custom food tags",
            "Shopping list generator",
        ),
        price=TierPrice(monthly=9.99, yearly=99.99),
        limits=TierLimits(receipt_scans=20, items_per_receipt=0, pantry_users=1, locations=10),
    ),
    SubscriptionTier(
        id=TIER_PRO,
        name="Family Pantry Pro",
        description="Complete solution for families",
        features=(
            "All Smart Pantry features",
            "Unlimited receipt scans",
            "Share with up to 5 family members",
            "Unlimited storage locations",
            "Advanced analytics & reports",
            "Nutritional information",
            "Meal planning integration",
            "Priority support",
        ),
        price=TierPrice(monthly=19.99, yearly=199.99),
        limits=TierLimits(receipt_scans=0, items_per_receipt=0, pantry_users=5, locations=0),
    ),
)

_TIERS_BY_ID = {tier.id: tier for tier in SUBSCRIPTION_TIERS}

# Tier ids written by older Stripe product metadata
_LEGACY_TIER_IDS = {
    "smart_pantry": TIER_SMART,
    "family_pantry_pro": TIER_PRO,
}


def normalize_tier_id(tier_id: Optional[str]) -> str:
    """Map any tier identifier (including legacy product metadata) to a catalog id."""
    if not tier_id:
        return TIER_FREE
    tier_id = str(tier_id).strip().lower()
    tier_id = _LEGACY_TIER_IDS.get(tier_id, tier_id)
    return tier_id if tier_id in _TIERS_BY_ID else TIER_FREE


def tier_for(tier_id: Optional[str]) -> SubscriptionTier:
    """Look up a tier by id. Unknown or missing ids resolve to the free tier."""
    return _TIERS_BY_ID[normalize_tier_id(tier_id)]


def _user_field(user: Any, snake: str, camel: str, default=None):
    if isinstance(user, dict):
        if snake in user:
            return user[snake]
        return user.get(camel, default)
    return getattr(user, snake, getattr(user, camel, default))


def _scans_used(user: Any) -> int:
    used = _user_field(user, "receipt_scans_used", "receiptScansUsed", 0)
    try:
        return max(0, int(used or 0))
    except (TypeError, ValueError):
        return 0


def user_tier(user: Any) -> SubscriptionTier:
    return tier_for(_user_field(user, "subscription_tier", "subscriptionTier"))


def has_reached_limit(user: Any) -> bool:
    """
    Check whether a user has used up their receipt scans.

    A missing user fails closed (limit reached). A tier scan limit of 0 is
    unlimited and never reached.
    """
    if user is None:
        return True

    tier = user_tier(user)
    if tier.limits.receipt_scans == 0:
        return False

    return _scans_used(user) >= tier.limits.receipt_scans


def remaining_scans(user: Any) -> ScanAllowance:
    """
    Scans used/total/remaining for display.

    total and remaining are "Unlimited" for unlimited tiers; remaining is
    never negative.
    """
    if user is None:
        return ScanAllowance(used=0, total=0, remaining=0)

    tier = user_tier(user)
    used = _scans_used(user)

    if tier.limits.receipt_scans == 0:
        return ScanAllowance(used=used, total=UNLIMITED, remaining=UNLIMITED)

    total = tier.limits.receipt_scans
    return ScanAllowance(used=used, total=total, remaining=max(0, total - used))


def scan_usage_payload(scans_used: int, tier: SubscriptionTier) -> dict:
    """Data body of a scan_usage_update channel message."""
    limit = tier.limits.receipt_scans or None
    return {
        "scansUsed": scans_used,
        "scansLimit": limit,
        "scansRemaining": max(0, limit - scans_used) if limit is not None else None,
        "limitReached": scans_used >= limit if limit is not None else False,
    }


def entitlements_summary(user: Any) -> dict:
    """Tier, limits and scan allowance in the shape the profile endpoint serves."""
    tier = user_tier(user)
    return {
        "tier": tier.id,
        "tierName": tier.name,
        "limits": {
            "receiptScans": tier.limits.receipt_scans,
            "itemsPerReceipt": tier.limits.items_per_receipt,
            "pantryUsers": tier.limits.pantry_users,
            "locations": tier.limits.locations,
        },
        "scans": remaining_scans(user).as_dict(),
        "limitReached": has_reached_limit(user),
    }
