"""
Notifications Router - list and acknowledge in-app notifications
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import get_current_user
from backend.utils.responses import success_response, error_response
from database import get_db
from services.notification_service import NotificationService

notifications_router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@notifications_router.get("")
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notifications = await NotificationService(db).list_notifications(user.id, limit=limit)
    return success_response(notifications)


@notifications_router.get("/unread-count")
async def unread_count(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    count = await NotificationService(db).get_unread_count(user.id)
    return success_response({"unreadCount": count})


@notifications_router.post("/read-all")
async def mark_all_read(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await NotificationService(db).mark_all_notifications_read(user.id):
        return error_response("UPDATE_FAILED", status=500, message="Could not mark notifications as read")
    return success_response({"unreadCount": 0})


@notifications_router.post("/{notification_id}/read")
async def mark_read(notification_id: int, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await NotificationService(db).mark_notification_read(notification_id, user_id=user.id):
        return error_response("NOT_FOUND", status=404, message="Notification not found")
    return success_response({"id": notification_id, "read": True})
