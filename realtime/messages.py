"""
Channel message taxonomy.

Every frame on /api/ws is a JSON text object {"type": str, "data": object}.
Known types decode to their own class; anything else decodes to
UnknownMessage so new server-side types are ignored by older clients.
"""

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

NOTIFICATION = "notification"
SCAN_USAGE_UPDATE = "scan_usage_update"
CONNECTION_ESTABLISHED = "connection_established"
PING = "ping"
PONG = "pong"
UNREAD_COUNT_UPDATE = "unread_count_update"


class MessageParseError(ValueError):
    """Raised when a frame is not a valid {type, data} JSON object."""


@dataclass(frozen=True)
class NotificationMessage:
    data: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = NOTIFICATION

    @property
    def is_unread_count_update(self) -> bool:
        return self.data.get("type") == UNREAD_COUNT_UPDATE

    @property
    def unread_count(self) -> Optional[int]:
        return self.data.get("unreadCount") if self.is_unread_count_update else None


@dataclass(frozen=True)
class ScanUsageUpdateMessage:
    data: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = SCAN_USAGE_UPDATE

    @property
    def scans_remaining(self):
        return self.data.get("scansRemaining")


@dataclass(frozen=True)
class ConnectionEstablishedMessage:
    data: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = CONNECTION_ESTABLISHED


@dataclass(frozen=True)
class PingMessage:
    data: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = PING


@dataclass(frozen=True)
class PongMessage:
    data: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = PONG


@dataclass(frozen=True)
class UnknownMessage:
    """Any type this client does not know about yet."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)


ChannelMessage = Union[
    NotificationMessage,
    ScanUsageUpdateMessage,
    ConnectionEstablishedMessage,
    PingMessage,
    PongMessage,
    UnknownMessage,
]

MESSAGE_TYPES = {
    cls.type: cls
    for cls in (
        NotificationMessage,
        ScanUsageUpdateMessage,
        ConnectionEstablishedMessage,
        PingMessage,
        PongMessage,
    )
}


def build_message(type: str, data: Optional[dict] = None) -> ChannelMessage:
    data = data or {}
    cls = MESSAGE_TYPES.get(type)
    if cls is None:
        return UnknownMessage(type=type, data=data)
    return cls(data=data)


def parse_message(text: Union[str, bytes]) -> ChannelMessage:
    """
    Decode a frame into a ChannelMessage.

    Raises:
        MessageParseError: if the frame is not JSON or not a {type, data} object
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MessageParseError(f"Invalid JSON frame: {e}") from e

    if not isinstance(payload, dict):
        raise MessageParseError("Frame must be a JSON object")

    message_type = payload.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MessageParseError("Frame is missing a string 'type'")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MessageParseError(f"Frame 'data' must be an object, got {type(data).__name__}")

    return build_message(message_type, data)


def encode_message(message: Union[ChannelMessage, dict]) -> str:
    if isinstance(message, dict):
        return json.dumps({"type": message["type"], "data": message.get("data") or {}}, default=str)
    return json.dumps({"type": message.type, "data": message.data}, default=str)
