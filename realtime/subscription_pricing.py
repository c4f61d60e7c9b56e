"""
Client-side view of the subscription price catalog.

Loads /api/subscription/prices through the query cache. When Stripe is not
configured on the server, or the request fails, the catalog is empty and every
paid tier resolves to a FallbackPrice.
"""

import logging
from typing import List, Optional

from backend.billing.pricing import PriceResult, max_discount_percentage, resolve_price
from realtime.api_client import ApiError
from realtime.query_cache import QueryCache

logger = logging.getLogger(__name__)

PRICES_QUERY_KEY = "/api/subscription/prices"


class SubscriptionPricing:
    def __init__(self, cache: QueryCache):
        self.cache = cache
        self.prices: List[dict] = []
        self.stripe_disabled = False

    async def load(self) -> List[dict]:
        try:
            data = await self.cache.fetch(PRICES_QUERY_KEY)
        except ApiError as e:
            self.stripe_disabled = e.status_code == 503
            logger.warning(f"Price catalog unavailable, using fallback prices: {e}")
            self.prices = []
            return self.prices

        if isinstance(data, dict) and data.get("stripeDisabled"):
            self.stripe_disabled = True
            self.prices = []
        else:
            self.stripe_disabled = False
            self.prices = list(data or [])
        return self.prices

    def price_for(self, tier_id: str, interval: str) -> Optional[PriceResult]:
        return resolve_price(self.prices, tier_id, interval)

    @property
    def max_discount_percentage(self) -> Optional[int]:
        return max_discount_percentage(self.prices)
