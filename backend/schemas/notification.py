"""Schemas for in-app notifications."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.schemas.base import BaseSchema


class NotificationPayload(BaseModel):
    """Message fanned out to jar members."""

    title: str = Field(..., max_length=120)
    body: str = Field(..., max_length=500)
    url: Optional[str] = None


class NotificationResponse(BaseSchema):
    notification_id: UUID
    jar_id: Optional[UUID] = None
    title: str
    body: str
    url: Optional[str] = None
    preference: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    success: bool = True
    updated: int
