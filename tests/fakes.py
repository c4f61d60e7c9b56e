"""
In-process stand-ins for the socket transport, the timer scheduler and server sockets
"""
import asyncio
from typing import Callable, List, Optional

from starlette.websockets import WebSocketState

from realtime.transport import ABNORMAL_CLOSURE, Frame, FrameKind
from services.connection_manager import ConnectionManager


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records timers instead of sleeping; tests fire them explicitly."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def fire_all(self):
        for timer in self.pending:
            timer.cancelled = True
            timer.callback()


class FakeConnection:
    def __init__(self):
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: List[str] = []
        self.closed_with: Optional[tuple] = None

    @property
    def is_open(self) -> bool:
        return self.closed_with is None

    async def send_text(self, data: str):
        self.sent.append(data)

    async def receive(self) -> Frame:
        return await self.frames.get()

    async def close(self, code: int = 1000, reason: str = ""):
        if self.closed_with is None:
            self.closed_with = (code, reason)

    # Server-side actions
    def push_text(self, text: str):
        self.frames.put_nowait(Frame(FrameKind.TEXT, data=text))

    def push_error(self, error: Exception):
        self.frames.put_nowait(Frame(FrameKind.ERROR, error=error))

    def drop(self, code: int = ABNORMAL_CLOSURE):
        self.frames.put_nowait(Frame(FrameKind.CLOSE, code=code, was_clean=False))

    def close_cleanly(self, code: int = 1000, reason: str = ""):
        self.frames.put_nowait(Frame(FrameKind.CLOSE, code=code, reason=reason, was_clean=True))


class FakeTransport:
    def __init__(self):
        self.urls: List[str] = []
        self.connections: List[FakeConnection] = []
        self.fail_next = 0

    async def open(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.fail_next:
            self.fail_next -= 1
            raise ConnectionRefusedError("server unavailable")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


async def settle(rounds: int = 5):
    """Let spawned tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeSocket:
    """Server-side WebSocket as seen by the ConnectionManager."""

    def __init__(self, open: bool = True):
        self.client_state = WebSocketState.CONNECTED if open else WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: List[str] = []

    async def send_text(self, text: str):
        self.sent.append(text)


class ReadBackManager(ConnectionManager):
    """Treats every user as online and reads the database from its own session on each push."""

    def __init__(self, sessions, read):
        super().__init__()
        self.sessions = sessions
        self.read = read
        self.seen = []

    def is_user_connected(self, user_id):
        return True

    async def send_to_user(self, user_id, message):
        async with self.sessions() as session:
            self.seen.append((message["type"], await self.read(session, user_id)))
        return True
