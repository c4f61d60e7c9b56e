"""
Notification Service - persists notifications and pushes them over /api/ws
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.billing.entitlements import scan_usage_payload, user_tier
from crud.notification import NotificationRepository
from models.notification import notification_payload
from realtime.messages import NOTIFICATION, SCAN_USAGE_UPDATE, UNREAD_COUNT_UPDATE
from services.connection_manager import ConnectionManager, connection_manager

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notifications are always stored; live delivery is best effort and only
    happens when the user has an open channel.
    """

    def __init__(self, db: AsyncSession, manager: Optional[ConnectionManager] = None):
        self.db = db
        self.repo = NotificationRepository(db)
        self.manager = manager or connection_manager

    async def send_notification_to_user(
        self,
        user_id: int,
        type: str,
        message: str,
        actor_id: Optional[int] = None,
    ) -> bool:
        """
        Store a notification and push it to the user's open connections.
        The write, with anything else pending in the session, is committed before the push.

        Returns:
            True if it was delivered live, False if it was only stored (or failed)
        """
        try:
            notification = await self.repo.create_notification(user_id, type, message, actor_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error sending notification to user {user_id}: {e}", exc_info=True)
            return False

        if not self.manager.is_user_connected(user_id):
            logger.info(f"User {user_id} not connected, notification saved to database only: {message}")
            return False

        sent = await self.manager.send_to_user(
            user_id, {"type": NOTIFICATION, "data": notification_payload(notification)}
        )
        if sent:
            logger.info(f"Notification sent to user {user_id} via WebSocket: {message}")
        else:
            logger.warning(f"Failed to send notification to user {user_id} via WebSocket despite connection")
        return sent

    async def list_notifications(self, user_id: int, limit: int = 50) -> List[dict]:
        notifications = await self.repo.list_for_user(user_id, limit=limit)
        return [notification_payload(n) for n in notifications]

    async def mark_notification_read(self, notification_id: int, user_id: Optional[int] = None) -> bool:
        """Mark one notification read. With user_id, only that user's notification is touched."""
        try:
            if user_id is not None:
                notification = await self.repo.get_notification(notification_id)
                if notification is None or notification.user_id != user_id:
                    return False
            return await self.repo.mark_read(notification_id)
        except Exception as e:
            logger.error(f"Error marking notification {notification_id} as read: {e}", exc_info=True)
            return False

    async def mark_all_notifications_read(self, user_id: int) -> bool:
        try:
            updated = await self.repo.mark_all_read(user_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error marking all notifications as read for user {user_id}: {e}", exc_info=True)
            return False

        logger.info(f"Marked {updated} notifications read for user {user_id}")
        if self.manager.is_user_connected(user_id):
            await self.manager.send_to_user(
                user_id,
                {"type": NOTIFICATION, "data": {"type": UNREAD_COUNT_UPDATE, "unreadCount": 0}},
            )
        return True

    async def get_unread_count(self, user_id: int) -> int:
        try:
            return await self.repo.count_unread(user_id)
        except Exception as e:
            logger.error(f"Error getting unread notification count for user {user_id}: {e}", exc_info=True)
            return 0

    async def send_scan_usage_update(self, user) -> bool:
        """Push the user's current scan usage so open clients refresh their profile."""
        if not self.manager.is_user_connected(user.id):
            return False

        data = scan_usage_payload(user.receipt_scans_used or 0, user_tier(user))
        sent = await self.manager.send_to_user(user.id, {"type": SCAN_USAGE_UPDATE, "data": data})
        if sent:
            logger.info(f"Scan usage update sent to user {user.id}: {data}")
        return sent
