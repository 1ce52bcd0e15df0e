"""Notification list, unseen badge count and watermark API routes."""

from fastapi import APIRouter

from reviewhub.dependencies import CurrentUser, DBSession, Notifications
from reviewhub.models.notification import NotificationList, NotificationWatermark, UnseenCount

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
    user: CurrentUser,
    service: Notifications,
    db: DBSession,
    mark_checked: bool = True,
) -> NotificationList:
    """Everything since the session started. Viewing the list resets the badge
    count once but keeps every message listed."""
    result = await service.list_notifications(user)
    if result.errors:
        # A failed read may leave the transaction unusable
        await db.rollback()
        return result
    if mark_checked:
        await service.mark_checked(user["sub"])
    await db.commit()
    return result


@router.get("/unseen-count", response_model=UnseenCount)
async def get_unseen_count(user: CurrentUser, service: Notifications, db: DBSession) -> UnseenCount:
    count = await service.compute_unseen_count(user)
    if count.errors:
        await db.rollback()
    else:
        # First access creates the watermark row
        await db.commit()
    return count


@router.post("/checked", response_model=NotificationWatermark)
async def mark_notifications_checked(user: CurrentUser, service: Notifications, db: DBSession) -> NotificationWatermark:
    watermark = await service.mark_checked(user["sub"])
    await db.commit()
    return watermark


@router.post("/session", response_model=NotificationWatermark)
async def reset_notification_session(user: CurrentUser, service: Notifications, db: DBSession) -> NotificationWatermark:
    """Start a new notification session; called by the identity boundary at login."""
    watermark = await service.reset_session(user["sub"])
    await db.commit()
    return watermark
