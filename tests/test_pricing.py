"""
Unit tests for yearly discounts and fallback price resolution
"""
import pytest

from backend.billing.pricing import (
    AuthoritativePrice,
    FallbackPrice,
    PriceResult,
    max_discount_percentage,
    price_catalog_with_discounts,
    resolve_price,
    yearly_discount,
)


def _price(price_id, tier, interval, amount):
    return {
        "id": price_id,
        "unit_amount": amount,
        "recurring": {"interval": interval},
        "product": {"name": tier.title(), "metadata": {"tier": tier}},
    }


CATALOG = [
    _price("price_live_smart_m", "smart", "month", 999),
    _price("price_live_smart_y", "smart", "year", 9999),
    _price("price_live_pro_m", "pro", "month", 1999),
    _price("price_live_pro_y", "pro", "year", 19999),
]


def test_yearly_discount_smart_pantry():
    discount = yearly_discount(999, 9999)
    assert discount.monthly_equivalent == pytest.approx(833.25)
    assert discount.discount_percentage == 17
    assert discount.total_savings == 1989


def test_yearly_discount_rounds_half_up():
    # 1 - 1050/1200 = 12.5%
    assert yearly_discount(100, 1050).discount_percentage == 13


def test_yearly_discount_unknown_amounts():
    assert yearly_discount(None, 9999) is None
    assert yearly_discount(999, None) is None
    assert yearly_discount(0, 9999) is None


def test_resolve_price_prefers_catalog():
    result = resolve_price(CATALOG, "smart", "yearly")
    assert isinstance(result, AuthoritativePrice)
    assert result.is_fallback is False
    assert result.id == "price_live_smart_y"


def test_resolve_price_uses_fallback_when_catalog_missing():
    result = resolve_price([], "pro", "monthly")
    assert isinstance(result, FallbackPrice)
    assert result.is_fallback is True
    assert result.id == "price_pro_monthly"
    assert result.unit_amount == 1999


def test_resolve_price_legacy_tier_metadata():
    catalog = [_price("price_legacy", "smart_pantry", "month", 999)]
    assert resolve_price(catalog, "smart", "monthly").id == "price_legacy"


def test_resolve_price_free_tier_has_no_price():
    assert resolve_price(CATALOG, "free", "monthly") is None


def test_catalog_discount_fields_only_on_yearly_with_monthly():
    catalog = [
        _price("price_live_smart_m", "smart", "month", 999),
        _price("price_live_smart_y", "smart", "year", 9999),
        _price("price_live_pro_y", "pro", "year", 19999),
    ]
    annotated = {p["id"]: p for p in price_catalog_with_discounts(catalog)}

    assert annotated["price_live_smart_y"]["discount_percentage"] == 17
    assert annotated["price_live_smart_y"]["total_savings"] == 1989
    assert "discount_percentage" not in annotated["price_live_smart_m"]
    assert "discount_percentage" not in annotated["price_live_pro_y"]
    # Input is left untouched
    assert "discount_percentage" not in catalog[1]


def test_max_discount_percentage():
    assert max_discount_percentage(CATALOG) == 17
    assert max_discount_percentage([]) is None


def test_price_result_must_say_where_it_came_from():
    with pytest.raises(TypeError):
        PriceResult({"id": "price_x", "unit_amount": 100})
