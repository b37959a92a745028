"""
In-app notification service.

Fans jar events (votes, new ideas, spins, achievements, level ups) out to the
members of a jar and serves each user's inbox.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.base import MemberStatus
from backend.models.jar import JarMember
from backend.models.notification import Notification
from backend.models.user import User
from backend.schemas.notification import NotificationPayload
from backend.utils.datetime_helpers import utc_now
from backend.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

NOTIFY_VOTING = "notify_voting"
NOTIFY_IDEA_ADDED = "notify_idea_added"
NOTIFY_JAR_SPUN = "notify_jar_spun"
NOTIFY_ACHIEVEMENTS = "notify_achievements"
NOTIFY_LEVEL_UP = "notify_level_up"

NOTIFICATION_PREFERENCES = frozenset({
    NOTIFY_VOTING,
    NOTIFY_IDEA_ADDED,
    NOTIFY_JAR_SPUN,
    NOTIFY_ACHIEVEMENTS,
    NOTIFY_LEVEL_UP,
})

DEFAULT_PAGE_SIZE = 50


class NotificationService:
    """Service for creating and reading in-app notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify_jar_members(
        self,
        jar_id: UUID,
        exclude_user_id: Optional[UUID],
        payload: NotificationPayload,
        preference: Optional[str] = None,
    ) -> int:
        """
        Write one notification per ACTIVE member of the jar.

        Members who turned ``preference`` off, and ``exclude_user_id`` (usually
        the actor), are skipped. The inserts run inside a SAVEPOINT: a failed
        fan-out rolls back only its own rows and is logged without raising,
        leaving the caller's session and loaded objects intact.

        Returns the number of notifications written.
        """
        if preference is not None and preference not in NOTIFICATION_PREFERENCES:
            raise ValueError(f"Unknown notification preference: {preference}")

        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(User)
                    .join(JarMember, JarMember.user_id == User.user_id)
                    .where(
                        JarMember.jar_id == jar_id,
                        JarMember.status == MemberStatus.ACTIVE.value,
                    )
                )
                recipients = [
                    user
                    for user in result.scalars().all()
                    if user.user_id != exclude_user_id
                    and (preference is None or getattr(user, preference))
                ]

                for user in recipients:
                    self.db.add(
                        Notification(
                            user_id=user.user_id,
                            jar_id=jar_id,
                            title=payload.title,
                            body=payload.body,
                            url=payload.url,
                            preference=preference,
                        )
                    )
        except SQLAlchemyError as e:
            logger.warning(f"Failed to notify members of jar {jar_id}: {e}")
            return 0

        await self.db.commit()
        logger.info(
            f"Notified {len(recipients)} member(s) of jar {jar_id}: {payload.title!r}"
        )
        return len(recipients)

    async def list_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[Notification]:
        """Return the user's notifications, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.notification_id)).where(
                Notification.user_id == user_id,
                Notification.read_at.is_(None),
            )
        )
        return result.scalar_one()

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if not notification or notification.user_id != user_id:
            raise NotFoundError("Notification not found")

        if notification.read_at is None:
            notification.read_at = utc_now()
            await self.db.commit()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
            .values(read_at=utc_now())
        )
        await self.db.commit()
        return result.rowcount
