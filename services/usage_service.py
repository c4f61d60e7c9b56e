"""
Usage Service - receipt scan metering against the user's tier
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.billing.entitlements import has_reached_limit, remaining_scans, user_tier
from crud.user import UserRepository
from services.connection_manager import ConnectionManager
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

SCAN_LIMIT_REACHED = "SCAN_LIMIT_REACHED"


class UsageService:
    def __init__(self, db: AsyncSession, manager: Optional[ConnectionManager] = None):
        self.db = db
        self.users = UserRepository(db)
        self.notifications = NotificationService(db, manager)

    async def record_receipt_scan(self, user):
        """
        Count one receipt scan for the user, refusing once the tier limit is reached.

        Returns:
            Normalized response: {"data": allowance, "is_error": False} or
            {"error": str, "code": "SCAN_LIMIT_REACHED", "status": 403, "is_error": True}
        """
        tier = user_tier(user)
        if has_reached_limit(user):
            return self._limit_reached(user, tier)

        try:
            counted = await self.users.increment_receipt_scans(user, limit=tier.limits.receipt_scans)
            if counted:
                await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to record receipt scan for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

        if not counted:
            return self._limit_reached(user, tier)

        await self.notifications.send_scan_usage_update(user)
        return {"data": remaining_scans(user).as_dict(), "is_error": False}

    def _limit_reached(self, user, tier):
        logger.info(f"User {user.id} reached the {tier.id} scan limit ({tier.limits.receipt_scans})")
        return {
            "error": (
                f"You have used all {tier.limits.receipt_scans} receipt scans included in "
                f"the {tier.name} plan. Upgrade to scan more receipts."
            ),
            "code": SCAN_LIMIT_REACHED,
            "status": 403,
            "data": remaining_scans(user).as_dict(),
            "is_error": True,
        }
