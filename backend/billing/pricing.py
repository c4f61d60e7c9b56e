"""
Price catalog helpers: tier/interval lookup, yearly discount math and the
hardcoded fallback table used when Stripe is unreachable.

Prices follow the Stripe shape served by /api/subscription/prices:
    {"id", "unit_amount", "recurring": {"interval"}, "product": {"name", "metadata": {"tier"}}}
Amounts are integer cents.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

from backend.billing.entitlements import normalize_tier_id
from config.settings import TIER_FREE, TIER_SMART, TIER_PRO

INTERVAL_TO_STRIPE = {"monthly": "month", "yearly": "year"}

# Cents, mirrors the public pricing page
FALLBACK_PRICES = {
    TIER_SMART: {
        "name": "Smart Pantry",
        "monthly": {"id": "price_smart_monthly", "unit_amount": 999},
        "yearly": {"id": "price_smart_yearly", "unit_amount": 9999},
    },
    TIER_PRO: {
        "name": "Family Pantry Pro",
        "monthly": {"id": "price_pro_monthly", "unit_amount": 1999},
        "yearly": {"id": "price_pro_yearly", "unit_amount": 19999},
    },
}


@dataclass(frozen=True)
class YearlyDiscount:
    monthly_equivalent: float
    discount_percentage: int
    total_savings: float

    def as_dict(self) -> dict:
        return {
            "monthly_equivalent": self.monthly_equivalent,
            "discount_percentage": self.discount_percentage,
            "total_savings": self.total_savings,
        }


@dataclass(frozen=True)
class PriceResult(ABC):
    price: dict

    @property
    @abstractmethod
    def is_fallback(self) -> bool: ...

    @property
    def id(self) -> str:
        return self.price["id"]

    @property
    def unit_amount(self) -> int:
        return self.price["unit_amount"]


@dataclass(frozen=True)
class AuthoritativePrice(PriceResult):
    """Price taken from the live Stripe catalog."""

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class FallbackPrice(PriceResult):
    """Hardcoded price used because the catalog had no match. Not authoritative."""

    @property
    def is_fallback(self) -> bool:
        return True


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def yearly_discount(monthly_amount: Optional[float], yearly_amount: Optional[float]) -> Optional[YearlyDiscount]:
    """
    Savings of paying yearly instead of twelve monthly payments.

    Returns None when either amount is unknown, so callers can tell
    "no data" apart from a 0% discount.
    """
    if monthly_amount is None or yearly_amount is None or monthly_amount <= 0:
        return None

    monthly_equivalent = yearly_amount / 12
    return YearlyDiscount(
        monthly_equivalent=monthly_equivalent,
        discount_percentage=_round_half_up((1 - monthly_equivalent / monthly_amount) * 100),
        total_savings=monthly_amount * 12 - yearly_amount,
    )


def price_tier(price: dict) -> Optional[str]:
    product = price.get("product")
    if not isinstance(product, dict):
        return None
    tier = (product.get("metadata") or {}).get("tier")
    return normalize_tier_id(tier) if tier else None


def price_interval(price: dict) -> Optional[str]:
    return (price.get("recurring") or {}).get("interval")


def find_catalog_price(prices: Optional[Iterable[dict]], tier_id: str, interval: str) -> Optional[dict]:
    stripe_interval = INTERVAL_TO_STRIPE.get(interval, interval)
    for price in prices or []:
        if price_tier(price) == tier_id and price_interval(price) == stripe_interval:
            return price
    return None


def fallback_price(tier_id: str, interval: str) -> Optional[dict]:
    entry = FALLBACK_PRICES.get(tier_id)
    if not entry or interval not in INTERVAL_TO_STRIPE:
        return None

    label = "Monthly" if interval == "monthly" else "Yearly"
    return {
        "id": entry[interval]["id"],
        "unit_amount": entry[interval]["unit_amount"],
        "recurring": {"interval": INTERVAL_TO_STRIPE[interval]},
        "product": {
            "name": f"{entry['name']} {label}",
            "description": f"{entry['name']} subscription billed {interval}",
            "metadata": {"tier": tier_id},
        },
    }


def resolve_price(prices: Optional[Iterable[dict]], tier_id: str, interval: str) -> Optional[PriceResult]:
    """
    Price for a tier and interval ("monthly" or "yearly").

    Prefers the live catalog; paid tiers missing from it get a FallbackPrice.
    The free tier has no price and resolves to None.
    """
    tier_id = normalize_tier_id(tier_id)
    if tier_id == TIER_FREE:
        return None

    price = find_catalog_price(prices, tier_id, interval)
    if price is not None:
        return AuthoritativePrice(price=price)

    price = fallback_price(tier_id, interval)
    return FallbackPrice(price=price) if price else None


def price_catalog_with_discounts(prices: Iterable[dict]) -> List[dict]:
    """
    Copy of the catalog with discount fields on yearly prices that have a
    monthly counterpart for the same tier. Other prices are left without them.
    """
    prices = list(prices or [])
    annotated = []
    for price in prices:
        price = dict(price)
        tier = price_tier(price)
        if tier and price_interval(price) == "year":
            monthly = find_catalog_price(prices, tier, "monthly")
            discount = yearly_discount(
                monthly.get("unit_amount") if monthly else None,
                price.get("unit_amount"),
            )
            if discount is not None:
                price.update(discount.as_dict())
        annotated.append(price)
    return annotated


def max_discount_percentage(prices: Iterable[dict]) -> Optional[int]:
    """Best yearly discount across the catalog, None when no discount is known."""
    percentages = [
        price["discount_percentage"]
        for price in price_catalog_with_discounts(prices)
        if "discount_percentage" in price
    ]
    return max(percentages) if percentages else None
