"""
Socket transport used by the EventChannel.

The channel only talks to the ChannelConnection protocol below; the default
implementation wraps aiohttp's WebSocket client. Frames are normalized into
three kinds (text, close, error) with browser-like close semantics: a close is
clean only when the closing handshake happened (server close frame or a close
we initiated).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol

import aiohttp

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE = 1006


class FrameKind(str, Enum):
    TEXT = "text"
    CLOSE = "close"
    ERROR = "error"


@dataclass
class Frame:
    kind: FrameKind
    data: Optional[str] = None
    code: Optional[int] = None
    reason: str = ""
    was_clean: bool = False
    error: Optional[BaseException] = None


class ChannelConnection(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...

    async def receive(self) -> Frame: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class Transport(Protocol):
    async def open(self, url: str) -> ChannelConnection: ...


class AiohttpConnection:
    """ChannelConnection over an aiohttp ClientWebSocketResponse."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws
        self._closed_by_us = False

    @property
    def is_open(self) -> bool:
        return not self._ws.closed

    async def send_text(self, data: str) -> None:
        await self._ws.send_str(data)

    async def receive(self) -> Frame:
        msg = await self._ws.receive()

        if msg.type == aiohttp.WSMsgType.TEXT:
            return Frame(FrameKind.TEXT, data=msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            return Frame(FrameKind.TEXT, data=msg.data.decode("utf-8", errors="replace"))
        if msg.type == aiohttp.WSMsgType.ERROR:
            return Frame(FrameKind.ERROR, error=self._ws.exception() or msg.data)

        if msg.type == aiohttp.WSMsgType.CLOSE:
            frame = Frame(FrameKind.CLOSE, code=msg.data, reason=msg.extra or "", was_clean=True)
        else:
            # CLOSING / CLOSED: our own close in progress, or the socket went away
            frame = Frame(
                FrameKind.CLOSE,
                code=self._ws.close_code if self._closed_by_us else ABNORMAL_CLOSURE,
                was_clean=self._closed_by_us,
            )
            if self._closed_by_us:
                # close() is still finishing the handshake and releases the session itself
                return frame
        await self._release()
        return frame

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._closed_by_us = True
        try:
            await self._ws.close(code=code, message=reason.encode("utf-8"))
        finally:
            await self._release()

    async def _release(self):
        if not self._session.closed:
            await self._session.close()


class AiohttpTransport:
    """
    Opens WebSocket connections with aiohttp, forwarding the session cookie
    issued by the auth layer.
    """

    def __init__(
        self,
        cookies: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        heartbeat: Optional[float] = None,
    ):
        self.cookies = cookies or {}
        self.headers = headers or {}
        self.heartbeat = heartbeat

    async def open(self, url: str) -> AiohttpConnection:
        session = aiohttp.ClientSession(cookies=self.cookies, headers=self.headers)
        try:
            ws = await session.ws_connect(url, heartbeat=self.heartbeat)
        except Exception:
            await session.close()
            raise
        logger.debug(f"WebSocket opened: {url}")
        return AiohttpConnection(session, ws)
