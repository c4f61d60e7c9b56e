"""
Event Channel: the client's single persistent connection to /api/ws.

State machine:

    disconnected -> connecting -> connected -> disconnected
         ^                                          |
         +---- reconnect after a fixed delay -------+
               (abnormal close while visible)

_handle_event() is the only writer of connection state and the only place a
reconnect is scheduled. Error events are recorded and logged; the close event
that always follows drives the transition. A failure to open counts as an
abnormal close. Reconnects retry forever at a fixed interval while the
viewport is visible; when hidden, the visibility listener reconnects once the
viewport comes back.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Set
from urllib.parse import urlsplit, urlunsplit

from realtime.messages import ChannelMessage, encode_message
from realtime.timers import LoopScheduler, Scheduler, TimerHandle
from realtime.transport import ABNORMAL_CLOSURE, ChannelConnection, FrameKind, Transport
from realtime.viewport import Viewport

logger = logging.getLogger(__name__)

CHANNEL_PATH = "/api/ws"
NORMAL_CLOSURE = 1000
CLOSE_REASON = "Application closing"
DEFAULT_RECONNECT_DELAY = 3.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Opened:
    connection: ChannelConnection


@dataclass(frozen=True)
class Errored:
    connection: Optional[ChannelConnection]
    error: Any


@dataclass(frozen=True)
class Closed:
    connection: Optional[ChannelConnection]
    was_clean: bool
    code: Optional[int] = None
    reason: str = ""


def channel_url(origin: str) -> str:
    """
    Channel endpoint on the page's own origin: same host and port, ws for
    http and wss for https, fixed path, no query string.
    """
    parts = urlsplit(origin)
    if not parts.netloc:
        raise ValueError(f"Cannot derive a channel URL from origin {origin!r}")
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    return urlunsplit((scheme, parts.netloc, CHANNEL_PATH, "", ""))


class EventChannel:
    """
    Owns at most one live connection. Use as an async context manager, or call
    start() and aclose() from the owning scope.
    """

    def __init__(
        self,
        origin: str,
        transport: Transport,
        on_message: Callable[[str], Any],
        viewport: Optional[Viewport] = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        scheduler: Optional[Scheduler] = None,
    ):
        self.origin = origin
        self.url = channel_url(origin)
        self.transport = transport
        self.on_message = on_message
        self.viewport = viewport or Viewport()
        self.reconnect_delay = reconnect_delay
        self.scheduler = scheduler or LoopScheduler()

        self._state = ConnectionState.DISCONNECTED
        self._connection: Optional[ChannelConnection] = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnect_timer: Optional[TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._started = False
        self._disposed = False

        self.last_error: Any = None
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self._state == ConnectionState.CONNECTING

    @property
    def connection(self) -> Optional[ChannelConnection]:
        """Live connection handle, None unless connected."""
        return self._connection if self.is_connected else None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    async def __aenter__(self) -> "EventChannel":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def start(self):
        if self._started:
            return
        self._started = True
        self.viewport.add_visibility_listener(self._on_visibility_change)
        await self.connect()

    async def connect(self):
        """
        Open the connection unless one is already opening or open.
        Any leftover connection object is closed first.
        """
        if self._disposed:
            return
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        self._cancel_reconnect()
        self._state = ConnectionState.CONNECTING

        previous = self._connection
        if previous is not None:
            self._connection = None
            self._stop_reader()
            await self._close_quietly(previous, NORMAL_CLOSURE, "Reconnecting")

        self.connect_attempts += 1
        logger.info(f"Opening WebSocket connection to {self.url}")

        try:
            connection = await self.transport.open(self.url)
        except Exception as e:
            self._handle_event(Errored(None, e))
            self._handle_event(Closed(None, was_clean=False, code=ABNORMAL_CLOSURE, reason=str(e)))
            return

        if self._disposed:
            await self._close_quietly(connection, NORMAL_CLOSURE, CLOSE_REASON)
            self._state = ConnectionState.DISCONNECTED
            return

        self._handle_event(Opened(connection))

    async def send(self, message: ChannelMessage) -> bool:
        """
        Send a message if the channel is open. Returns False when it is not;
        nothing is queued for later delivery.
        """
        connection = self._connection
        if self._state != ConnectionState.CONNECTED or connection is None or not connection.is_open:
            return False

        try:
            await connection.send_text(encode_message(message))
        except Exception as e:
            logger.warning(f"WebSocket send failed: {e}")
            return False
        return True

    async def aclose(self):
        """Remove the visibility listener and close cleanly with code 1000."""
        if self._disposed:
            return
        self._disposed = True
        self.viewport.remove_visibility_listener(self._on_visibility_change)
        self._cancel_reconnect()

        connection = self._connection
        if connection is not None:
            await self._close_quietly(connection, NORMAL_CLOSURE, CLOSE_REASON)
            self._handle_event(Closed(connection, was_clean=True, code=NORMAL_CLOSURE, reason=CLOSE_REASON))

        self._stop_reader()
        pending = [task for task in self._tasks if task is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _handle_event(self, event):
        if isinstance(event, Opened):
            self._connection = event.connection
            self._state = ConnectionState.CONNECTED
            self.last_error = None
            self._reader = self._spawn(self._read_loop(event.connection))
            logger.info("WebSocket connection established")

        elif isinstance(event, Errored):
            if event.connection is not self._connection:
                return
            self.last_error = event.error
            logger.error(f"WebSocket error: {event.error}")

        elif isinstance(event, Closed):
            if event.connection is not self._connection:
                # Late close from a connection we already replaced
                return
            self._connection = None
            self._reader = None
            self._state = ConnectionState.DISCONNECTED
            logger.info(
                f"WebSocket connection closed (code={event.code}, clean={event.was_clean}, reason={event.reason!r})"
            )
            if not event.was_clean and not self._disposed and self.viewport.visible:
                self._schedule_reconnect()

    async def _read_loop(self, connection: ChannelConnection):
        while True:
            try:
                frame = await connection.receive()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_event(Errored(connection, e))
                self._handle_event(Closed(connection, was_clean=False, code=ABNORMAL_CLOSURE, reason=str(e)))
                return

            if frame.kind == FrameKind.TEXT:
                await self._deliver(frame.data)
            elif frame.kind == FrameKind.ERROR:
                self._handle_event(Errored(connection, frame.error))
            else:
                self._handle_event(Closed(connection, was_clean=frame.was_clean, code=frame.code, reason=frame.reason))
                return

    async def _deliver(self, text: str):
        try:
            result = self.on_message(text)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"WebSocket message handler failed: {e}", exc_info=True)

    def _schedule_reconnect(self):
        self._cancel_reconnect()
        logger.info(f"Reconnecting in {self.reconnect_delay}s")
        self._reconnect_timer = self.scheduler.call_later(self.reconnect_delay, self._on_reconnect_timer)

    def _cancel_reconnect(self):
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _on_reconnect_timer(self):
        self._reconnect_timer = None
        if self._disposed or self._state != ConnectionState.DISCONNECTED:
            return
        if not self.viewport.visible:
            # The visibility listener reconnects when the viewport returns
            return
        self._spawn(self.connect())

    def _on_visibility_change(self, visible: bool):
        if visible and not self._disposed and self._state == ConnectionState.DISCONNECTED:
            self._spawn(self.connect())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _stop_reader(self):
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()

    async def _close_quietly(self, connection: ChannelConnection, code: int, reason: str):
        try:
            await connection.close(code, reason)
        except Exception as e:
            logger.error(f"Error closing WebSocket: {e}")
