"""
NotificationRepository for database operations on Notification model
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from database_models import Notification


class NotificationRepository:
    """Repository class for Notification database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(
        self,
        user_id: int,
        type: str,
        message: str,
        actor_id: Optional[int] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            message=message,
            actor_id=actor_id,
            read=False,
        )
        self.db.add(notification)
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def list_for_user(self, user_id: int, limit: int = 50) -> List[Notification]:
        """Newest first."""
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_notification(self, notification_id: int) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def mark_read(self, notification_id: int) -> bool:
        """
        Mark a single notification as read.

        Returns:
            True if a row was updated, False if the notification does not exist
        """
        result = await self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id)
            .values(read=True)
        )
        await self.db.flush()
        return (result.rowcount or 0) > 0

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await self.db.flush()
        return result.rowcount or 0

    async def count_unread(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return int(result.scalar_one() or 0)
