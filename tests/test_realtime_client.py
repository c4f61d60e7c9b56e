"""
RealtimeClient wiring: channel frames flow through the dispatcher into the cache
"""
import json

import httpx
import pytest

from backend.billing.pricing import AuthoritativePrice, FallbackPrice
from realtime.api_client import ApiClient, ApiError
from realtime.client import RealtimeClient
from realtime.event_channel import CLOSE_REASON
from tests.fakes import FakeScheduler, FakeTransport, settle

ORIGIN = "https://pantry.example"

PRICES = [
    {
        "id": "price_live_smart_m",
        "unit_amount": 999,
        "recurring": {"interval": "month"},
        "product": {"name": "Smart Pantry", "metadata": {"tier": "smart"}},
    },
    {
        "id": "price_live_smart_y",
        "unit_amount": 9999,
        "recurring": {"interval": "year"},
        "product": {"name": "Smart Pantry", "metadata": {"tier": "smart"}},
        "discount_percentage": 17,
    },
]


def api_with(routes):
    requests = []

    def handler(request: httpx.Request):
        requests.append(request.url.path)
        status, body = routes[request.url.path]
        return httpx.Response(status, json=body)

    return ApiClient(ORIGIN, transport=httpx.MockTransport(handler)), requests


async def test_scan_usage_refreshes_profile_and_shows_notice():
    transport = FakeTransport()
    api, requests = api_with({"/api/user": (200, {"ok": True, "data": {"id": 1, "receiptScansUsed": 1}})})

    async with RealtimeClient(ORIGIN, transport=transport, api=api, scheduler=FakeScheduler()) as client:
        assert client.is_connected
        assert transport.urls == ["wss://pantry.example/api/ws"]

        profile = await client.cache.fetch("/api/user")
        assert profile == {"id": 1, "receiptScansUsed": 1}

        client.viewport.navigate("/receipts")
        transport.last.push_text(json.dumps({
            "type": "scan_usage_update",
            "data": {"scansUsed": 2, "scansLimit": 3, "scansRemaining": 1, "limitReached": False},
        }))
        await settle()

        assert client.cache.is_stale("/api/user")
        assert client.notices.active[0].description == "You have 1 receipt scans remaining."

        await client.cache.fetch("/api/user")
        assert requests == ["/api/user", "/api/user"]

    assert transport.last.closed_with == (1000, CLOSE_REASON)
    assert client.notices.active == []


async def test_prices_fall_back_when_stripe_disabled():
    api, _ = api_with({"/api/subscription/prices": (503, {"ok": False, "data": {"stripeDisabled": True}})})

    async with RealtimeClient(ORIGIN, transport=FakeTransport(), api=api, scheduler=FakeScheduler()) as client:
        assert await client.pricing.load() == []
        assert client.pricing.stripe_disabled is True

        price = client.pricing.price_for("smart", "monthly")
        assert isinstance(price, FallbackPrice)
        assert price.unit_amount == 999
        assert client.pricing.max_discount_percentage is None


async def test_prices_from_catalog():
    api, _ = api_with({"/api/subscription/prices": (200, {"ok": True, "data": PRICES})})

    async with RealtimeClient(ORIGIN, transport=FakeTransport(), api=api, scheduler=FakeScheduler()) as client:
        await client.pricing.load()

        assert client.pricing.stripe_disabled is False
        assert isinstance(client.pricing.price_for("smart", "yearly"), AuthoritativePrice)
        assert isinstance(client.pricing.price_for("pro", "yearly"), FallbackPrice)
        assert client.pricing.max_discount_percentage == 17


@pytest.mark.parametrize("body", [{"ok": True, "data": {"id": 1}}, {"id": 1}])
async def test_api_client_unwraps_envelopes(body):
    api, _ = api_with({"/api/user": (200, body)})
    assert await api.fetch("/api/user") == {"id": 1}
    await api.aclose()


def refuse_connection(request: httpx.Request):
    raise httpx.ConnectError("connection refused", request=request)


def html_page(request: httpx.Request):
    return httpx.Response(200, text="<html>maintenance</html>")


async def test_network_failure_is_an_api_error():
    api = ApiClient(ORIGIN, transport=httpx.MockTransport(refuse_connection))

    with pytest.raises(ApiError) as exc_info:
        await api.fetch("/api/user")

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    await api.aclose()


@pytest.mark.parametrize("handler", [refuse_connection, html_page])
async def test_prices_fall_back_when_catalog_is_unreachable(handler):
    api = ApiClient(ORIGIN, transport=httpx.MockTransport(handler))

    async with RealtimeClient(ORIGIN, transport=FakeTransport(), api=api, scheduler=FakeScheduler()) as client:
        assert await client.pricing.load() == []
        assert client.pricing.stripe_disabled is False

        price = client.pricing.price_for("pro", "yearly")
        assert isinstance(price, FallbackPrice)
        assert price.unit_amount == 19999
