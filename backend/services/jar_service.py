"""Jar service: jar lifecycle, invite codes and membership."""
import logging
import secrets
import string
import uuid
from typing import Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.config import get_settings
from backend.models.base import MemberRole, MemberStatus, SelectionMode, VoteSessionStatus
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.models.vote import VoteSession
from backend.utils.categories import GENERAL_TOPIC
from backend.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    JarNotFoundError,
    LimitReachedError,
    MemberNotFoundError,
    NotAMemberError,
    VoteAlreadyInProgressError,
)

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 10

UPDATABLE_FIELDS = ("name", "topic", "selection_mode", "vote_candidates_count", "default_idea_private")


class JarService:
    """Service for creating jars and managing who belongs to them."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _generate_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self.settings.jar_code_length))

    async def _unique_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._generate_code()
            existing = await self.db.execute(select(Jar.jar_id).where(Jar.reference_code == code))
            if existing.scalar_one_or_none() is None:
                return code
        raise RuntimeError("Could not generate a unique jar code")

    async def get_jar(self, jar_id: UUID) -> Jar:
        jar = await self.db.get(Jar, jar_id)
        if not jar:
            raise JarNotFoundError()
        return jar

    async def get_membership(self, jar_id: UUID, user_id: UUID) -> Optional[JarMember]:
        result = await self.db.execute(
            select(JarMember).where(JarMember.jar_id == jar_id, JarMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def require_member(self, jar_id: UUID, user_id: UUID) -> JarMember:
        member = await self.get_membership(jar_id, user_id)
        if not member:
            raise NotAMemberError()
        return member

    async def require_admin(self, jar_id: UUID, user_id: UUID) -> JarMember:
        member = await self.require_member(jar_id, user_id)
        if not member.is_admin:
            raise ForbiddenError()
        return member

    async def has_active_vote(self, jar_id: UUID) -> bool:
        result = await self.db.execute(
            select(VoteSession.session_id).where(
                VoteSession.jar_id == jar_id,
                VoteSession.status == VoteSessionStatus.ACTIVE.value,
            )
        )
        return result.scalar_one_or_none() is not None

    async def _count_admins(self, jar_id: UUID) -> int:
        return await self.db.scalar(
            select(func.count(JarMember.member_id)).where(
                JarMember.jar_id == jar_id, JarMember.role == MemberRole.ADMIN.value
            )
        )

    # ------------------------------------------------------------------
    # Jars
    # ------------------------------------------------------------------
    async def create_jar(
        self,
        user: User,
        name: str,
        topic: Optional[str] = None,
        selection_mode: Optional[str] = None,
        vote_candidates_count: int = 0,
        default_idea_private: bool = False,
    ) -> Jar:
        """Create a jar with the caller as its ADMIN and make it their active jar."""
        if not user.is_premium:
            admin_count = await self.db.scalar(
                select(func.count(JarMember.member_id)).where(
                    JarMember.user_id == user.user_id, JarMember.role == MemberRole.ADMIN.value
                )
            )
            if admin_count >= self.settings.free_jar_limit:
                raise LimitReachedError(
                    f"Limit reached: Free accounts can manage {self.settings.free_jar_limit} jars. "
                    "Upgrade to Pro for unlimited jars!"
                )

        jar = Jar(
            jar_id=uuid.uuid4(),
            name=name.strip(),
            reference_code=await self._unique_code(),
            topic=topic or GENERAL_TOPIC,
            selection_mode=SelectionMode(selection_mode or SelectionMode.RANDOM.value).value,
            vote_candidates_count=vote_candidates_count,
            default_idea_private=default_idea_private,
        )
        self.db.add(jar)
        await self.db.flush()

        self.db.add(
            JarMember(
                user_id=user.user_id,
                jar_id=jar.jar_id,
                role=MemberRole.ADMIN.value,
                status=MemberStatus.ACTIVE.value,
            )
        )
        user.active_jar_id = jar.jar_id
        await self.db.commit()
        await self.db.refresh(jar)

        logger.info(f"User {user.user_id} created jar {jar.jar_id} ({jar.reference_code})")
        return jar

    async def list_jars(self, user_id: UUID) -> list[tuple[Jar, JarMember]]:
        result = await self.db.execute(
            select(Jar, JarMember)
            .join(JarMember, JarMember.jar_id == Jar.jar_id)
            .where(JarMember.user_id == user_id)
            .order_by(JarMember.joined_at)
        )
        return [(jar, member) for jar, member in result.all()]

    async def get_jar_detail(self, jar_id: UUID, user_id: UUID) -> tuple[Jar, JarMember, list[JarMember]]:
        member = await self.require_member(jar_id, user_id)
        jar = await self.get_jar(jar_id)
        members_result = await self.db.execute(
            select(JarMember)
            .where(JarMember.jar_id == jar_id)
            .options(selectinload(JarMember.user))
            .order_by(JarMember.joined_at)
        )
        return jar, member, list(members_result.scalars().all())

    async def update_jar(self, jar_id: UUID, user_id: UUID, **changes) -> Jar:
        """Apply the given field changes. ADMIN only.

        Leaving VOTE selection mode is refused while a vote is running.
        """
        await self.require_admin(jar_id, user_id)
        jar = await self.get_jar(jar_id)

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise BadRequestError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        new_mode = changes.get("selection_mode")
        if new_mode is not None:
            new_mode = SelectionMode(new_mode).value
            changes["selection_mode"] = new_mode
            if (
                jar.selection_mode == SelectionMode.VOTE.value
                and new_mode != SelectionMode.VOTE.value
                and await self.has_active_vote(jar_id)
            ):
                raise VoteAlreadyInProgressError(
                    "Cannot change selection mode while a vote is in progress"
                )

        for field, value in changes.items():
            if value is not None:
                setattr(jar, field, value.strip() if field == "name" else value)

        await self.db.commit()
        await self.db.refresh(jar)
        logger.info(f"Jar {jar_id} updated by {user_id}: {sorted(changes)}")
        return jar

    async def delete_jar(self, jar_id: UUID, user_id: UUID) -> None:
        await self.require_admin(jar_id, user_id)
        jar = await self.get_jar(jar_id)

        # Point members that had this jar active somewhere else
        members_result = await self.db.execute(
            select(User).where(User.active_jar_id == jar_id)
        )
        for member_user in members_result.scalars().all():
            member_user.active_jar_id = None

        await self.db.delete(jar)
        await self.db.commit()
        logger.info(f"Jar {jar_id} deleted by {user_id}")

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    async def join_jar(self, user: User, code: str) -> tuple[Jar, bool]:
        """Join by reference code. Returns (jar, already_member)."""
        normalized = (code or "").strip().upper()
        if not normalized:
            raise BadRequestError("Code is required")

        result = await self.db.execute(select(Jar).where(func.upper(Jar.reference_code) == normalized))
        jar = result.scalar_one_or_none()
        if not jar:
            raise JarNotFoundError("Jar not found. Check the code and try again.")

        existing = await self.get_membership(jar.jar_id, user.user_id)
        if existing:
            user.active_jar_id = jar.jar_id
            await self.db.commit()
            return jar, True

        self.db.add(
            JarMember(
                user_id=user.user_id,
                jar_id=jar.jar_id,
                role=MemberRole.MEMBER.value,
                status=MemberStatus.ACTIVE.value,
            )
        )
        user.active_jar_id = jar.jar_id
        try:
            await self.db.commit()
        except IntegrityError:
            # Joined concurrently from another request
            await self.db.rollback()
            return await self.get_jar(jar.jar_id), True

        logger.info(f"User {user.user_id} joined jar {jar.jar_id}")
        return jar, False

    async def leave_jar(self, jar_id: UUID, user: User) -> None:
        """Leave a jar. The last ADMIN cannot leave while others remain."""
        member = await self.require_member(jar_id, user.user_id)

        if member.is_admin:
            member_count = await self.db.scalar(
                select(func.count(JarMember.member_id)).where(JarMember.jar_id == jar_id)
            )
            if member_count > 1 and await self._count_admins(jar_id) == 1:
                raise BadRequestError(
                    "You are the only admin. Promote another member before leaving."
                )

        await self.db.delete(member)
        if user.active_jar_id == jar_id:
            user.active_jar_id = None
        await self.db.commit()
        logger.info(f"User {user.user_id} left jar {jar_id}")

    async def regenerate_code(self, jar_id: UUID, user_id: UUID) -> str:
        await self.require_admin(jar_id, user_id)
        jar = await self.get_jar(jar_id)
        jar.reference_code = await self._unique_code()
        await self.db.commit()
        logger.info(f"Jar {jar_id} reference code regenerated")
        return jar.reference_code

    async def update_member_role(self, jar_id: UUID, admin_id: UUID, target_user_id: UUID, role: str) -> JarMember:
        await self.require_admin(jar_id, admin_id)
        target = await self.get_membership(jar_id, target_user_id)
        if not target:
            raise MemberNotFoundError()

        new_role = MemberRole(role).value
        if target.is_admin and new_role != MemberRole.ADMIN.value and await self._count_admins(jar_id) == 1:
            raise BadRequestError("A jar needs at least one admin")

        target.role = new_role
        await self.db.commit()
        logger.info(f"Member {target_user_id} of jar {jar_id} is now {new_role}")
        return target

    async def remove_member(self, jar_id: UUID, admin_id: UUID, target_user_id: UUID) -> None:
        await self.require_admin(jar_id, admin_id)
        if target_user_id == admin_id:
            raise BadRequestError("Use leave to remove yourself from a jar")

        target = await self.get_membership(jar_id, target_user_id)
        if not target:
            raise MemberNotFoundError()

        target_user = await self.db.get(User, target_user_id)
        if target_user and target_user.active_jar_id == jar_id:
            target_user.active_jar_id = None

        await self.db.delete(target)
        await self.db.commit()
        logger.info(f"Member {target_user_id} removed from jar {jar_id} by {admin_id}")
