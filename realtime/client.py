"""
Realtime client: owns the event channel and its collaborators for one
signed-in session.

    async with RealtimeClient("https://pantry.example", cookies={"auth_token": token}) as client:
        client.viewport.navigate("/receipts")
        ...

Everything that needs the channel receives it from here; nothing reaches for
a global. Leaving the context closes the channel with code 1000.
"""

import logging
from typing import Dict, Optional

from config.settings import settings
from realtime.api_client import ApiClient
from realtime.dispatcher import NotificationDispatcher
from realtime.event_channel import EventChannel
from realtime.messages import ChannelMessage
from realtime.notices import NoticeBoard
from realtime.query_cache import QueryCache
from realtime.subscription_pricing import SubscriptionPricing
from realtime.timers import Scheduler
from realtime.transport import AiohttpTransport, Transport
from realtime.viewport import Viewport

logger = logging.getLogger(__name__)


class RealtimeClient:
    def __init__(
        self,
        origin: str,
        cookies: Optional[Dict[str, str]] = None,
        transport: Optional[Transport] = None,
        api: Optional[ApiClient] = None,
        viewport: Optional[Viewport] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.origin = origin
        self.viewport = viewport or Viewport()
        self.api = api or ApiClient(origin, cookies=cookies)
        self.cache = QueryCache(fetcher=self.api.fetch)
        self.notices = NoticeBoard(duration=settings.notice_duration_seconds, scheduler=scheduler)
        self.dispatcher = NotificationDispatcher(self.cache, self.viewport, self.notices)
        self.pricing = SubscriptionPricing(self.cache)
        self.channel = EventChannel(
            origin,
            transport or AiohttpTransport(cookies=cookies),
            on_message=self.dispatcher.handle_frame,
            viewport=self.viewport,
            reconnect_delay=settings.ws_reconnect_delay_seconds,
            scheduler=scheduler,
        )

    @property
    def is_connected(self) -> bool:
        return self.channel.is_connected

    async def send(self, message: ChannelMessage) -> bool:
        return await self.channel.send(message)

    async def __aenter__(self) -> "RealtimeClient":
        logger.info(f"Starting realtime client for {self.origin}")
        await self.channel.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self.channel.aclose()
        self.notices.clear()
        await self.api.aclose()
