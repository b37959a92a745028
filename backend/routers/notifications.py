"""In-app notification inbox endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from backend.services import NotificationService
from backend.services.notification_service import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    """The caller's notifications, newest first."""
    service = NotificationService(db)
    notifications = await service.list_notifications(user.user_id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=await service.count_unread(user.user_id),
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    updated = await NotificationService(db).mark_all_read(user.user_id)
    return MarkAllReadResponse(success=True, updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await NotificationService(db).mark_read(user.user_id, notification_id)
    return NotificationResponse.model_validate(notification)
