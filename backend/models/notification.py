"""
In-app notification model.

Stores the messages fanned out to jar members when something happens in a
jar they belong to (a vote starts or ends, an idea is added, the jar is spun,
an achievement unlocks).
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String

from backend.database import Base
from backend.models.base import get_uuid_column, utc_now


class Notification(Base):
    """Notification delivered to a single user."""

    __tablename__ = "notifications"

    notification_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = get_uuid_column(
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="CASCADE"), nullable=True)
    title = Column(String(120), nullable=False)
    body = Column(String(500), nullable=False)
    url = Column(String(255), nullable=True)
    preference = Column(String(50), nullable=True)  # e.g. 'notify_voting'
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.notification_id}, title={self.title!r}, user={self.user_id})>"
