"""
Notification dispatcher: turns inbound channel frames into cache
invalidations and, for scan usage on receipts pages, a transient notice.

Holds no state of its own. Every effect is an invalidation or a notice, so
replaying a message leaves the cache in the same state.
"""

import logging
from typing import Optional, Union

from realtime.messages import (
    ChannelMessage,
    MessageParseError,
    NotificationMessage,
    ScanUsageUpdateMessage,
    parse_message,
)
from realtime.notices import NoticeBoard
from realtime.query_cache import QueryCache
from realtime.viewport import Viewport

logger = logging.getLogger(__name__)

NOTIFICATIONS_QUERY_KEY = "/api/notifications"
USER_QUERY_KEY = "/api/user"
RECEIPTS_PATH = "/receipts"

SCAN_NOTICE_TITLE = "Receipt Scan Used"


class NotificationDispatcher:
    def __init__(self, cache: QueryCache, viewport: Viewport, notices: NoticeBoard):
        self.cache = cache
        self.viewport = viewport
        self.notices = notices

    def handle_frame(self, text: Union[str, bytes]) -> Optional[ChannelMessage]:
        """
        Parse and dispatch one inbound frame. Malformed frames are logged and
        dropped; the channel keeps running.
        """
        try:
            message = parse_message(text)
        except MessageParseError as e:
            logger.error(f"Failed to parse WebSocket message: {e}")
            return None

        self.dispatch(message)
        return message

    def dispatch(self, message: ChannelMessage):
        if isinstance(message, NotificationMessage):
            self._on_notification(message)
        elif isinstance(message, ScanUsageUpdateMessage):
            self._on_scan_usage_update(message)
        else:
            # Connection greetings, pongs and unknown types carry no cache effect
            logger.debug(f"Ignoring channel message of type {message.type}")

    def _on_notification(self, message: NotificationMessage):
        if message.is_unread_count_update:
            logger.info(f"Received unread count update: {message.unread_count}")
        self.cache.invalidate(NOTIFICATIONS_QUERY_KEY)

    def _on_scan_usage_update(self, message: ScanUsageUpdateMessage):
        logger.info(f"Received scan usage update: {message.data}")
        self.cache.invalidate(USER_QUERY_KEY)

        if RECEIPTS_PATH in self.viewport.path:
            self.notices.show(
                SCAN_NOTICE_TITLE,
                f"You have {message.scans_remaining} receipt scans remaining.",
            )
