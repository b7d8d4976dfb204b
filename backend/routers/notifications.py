"""
Notification API endpoints.

Plain request/response access to the feed. Live delivery goes through the
WebSocket at /ws/notifications/{user_id}.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import get_config, get_notification_repository
from backend.schemas import (
    ActionResponse,
    NotificationListResponse,
    notification_response,
)
from weddingdesk.core.config import Config
from weddingdesk.core.errors import BackendError
from weddingdesk.core.models import Notification
from weddingdesk.core.repository import NotificationRepository

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{user_id}", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str,
    unread_only: bool = Query(False),
    limit: Optional[int] = Query(None, ge=1, le=500),
    repository: NotificationRepository = Depends(get_notification_repository),
    config: Config = Depends(get_config),
):
    """Newest-first notifications for a user."""
    limit = limit or config.get("feed_limit", "notifications", 25)
    try:
        rows = repository.list_for_user(user_id, limit)
        unread = repository.unread_count(user_id)
    except BackendError as e:
        raise HTTPException(status_code=503, detail=str(e))

    notifications = [Notification.from_dict(r) for r in rows]
    if unread_only:
        notifications = [n for n in notifications if not n.read]

    return NotificationListResponse(
        notifications=[notification_response(n) for n in notifications],
        unread_count=unread,
    )


@router.post("/{notification_id}/read", response_model=ActionResponse)
async def mark_notification_read(
    notification_id: int,
    repository: NotificationRepository = Depends(get_notification_repository),
):
    """Mark one notification read (idempotent)."""
    try:
        if repository.get(notification_id) is None:
            raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
        repository.mark_read(notification_id)
    except BackendError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ActionResponse(success=True, message="Notification marked read",
                          data={"id": notification_id})


@router.post("/users/{user_id}/read-all", response_model=ActionResponse)
async def mark_all_notifications_read(
    user_id: str,
    repository: NotificationRepository = Depends(get_notification_repository),
):
    """Mark every unread notification of a user read."""
    try:
        count = repository.mark_all_read(user_id)
    except BackendError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ActionResponse(success=True, message=f"Marked {count} notification(s) read",
                          data={"count": count})
