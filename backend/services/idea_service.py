"""Idea service: jar contents, visibility masking and spinning."""
import logging
import random
import uuid
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.config import get_settings
from backend.models.base import IdeaStatus, MemberStatus, SelectionMode, VoteSessionStatus
from backend.models.idea import Idea
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.models.vote import Vote, VoteSession
from backend.schemas.notification import NotificationPayload
from backend.services.gamification_service import GamificationService, XpAward
from backend.services.notification_service import (
    NotificationService,
    NOTIFY_IDEA_ADDED,
    NOTIFY_JAR_SPUN,
)
from backend.utils.categories import (
    default_category_for_topic,
    get_categories_for_topic,
    is_valid_category_for_topic,
)
from backend.utils.datetime_helpers import utc_now
from backend.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    IdeaNotFoundError,
    InvalidCategoryError,
    JarNotFoundError,
    LimitReachedError,
    NoMatchingIdeasError,
    NotAMemberError,
    VoteAlreadyInProgressError,
    VoteLockedError,
)

logger = logging.getLogger(__name__)

SURPRISE_MASK = ("Surprise Idea", "This idea will be revealed when you spin the jar!")
SECRET_MASK = ("??? (Secret Idea)", "shhh... it's a secret!")

COST_ORDER = ["FREE", "$", "$$", "$$$"]
ACTIVITY_ORDER = ["LOW", "MEDIUM", "HIGH"]

EDITABLE_FIELDS = (
    "description",
    "details",
    "category",
    "cost",
    "duration",
    "activity_level",
    "time_of_day",
    "indoor",
    "is_private",
    "is_surprise",
)


@dataclass
class IdeaView:
    """An idea as seen by one member, possibly masked."""
    idea: Idea
    description: str
    details: Optional[str]
    is_masked: bool


@dataclass
class SpinResult:
    idea: Idea
    xp: XpAward
    achievements: list[str]


def mask_idea(idea: Idea, viewer_id: UUID) -> IdeaView:
    """Hide unselected private or surprise ideas written by someone else."""
    hidden = (
        idea.selected_at is None
        and idea.created_by_id != viewer_id
        and (idea.is_private or idea.is_surprise)
    )
    if not hidden:
        return IdeaView(idea=idea, description=idea.description, details=idea.details, is_masked=False)

    description, details = SURPRISE_MASK if idea.is_surprise else SECRET_MASK
    return IdeaView(idea=idea, description=description, details=details, is_masked=True)


def matches_filters(idea: Idea, filters: dict) -> bool:
    """Apply spin filters. Missing or empty filters match everything."""
    category = filters.get("category")
    if category and idea.category != category.upper():
        return False

    time_of_day = filters.get("time_of_day")
    if time_of_day and time_of_day != "ANY" and idea.time_of_day not in ("ANY", time_of_day):
        return False

    min_duration = filters.get("min_duration")
    if min_duration is not None and idea.duration < min_duration:
        return False

    max_duration = filters.get("max_duration")
    if max_duration is not None and idea.duration > max_duration:
        return False

    max_cost = filters.get("max_cost")
    if max_cost and idea.cost in COST_ORDER and COST_ORDER.index(idea.cost) > COST_ORDER.index(max_cost):
        return False

    max_level = filters.get("max_activity_level")
    if (
        max_level
        and idea.activity_level in ACTIVITY_ORDER
        and ACTIVITY_ORDER.index(idea.activity_level) > ACTIVITY_ORDER.index(max_level)
    ):
        return False

    indoor = filters.get("indoor")
    if indoor is not None and idea.indoor != indoor:
        return False

    return True


class IdeaService:
    """Service for adding, editing, listing and spinning ideas."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[NotificationService] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.settings = get_settings()
        self.notifier = notifier or NotificationService(db)
        self.rng = rng or random.Random()
        self.gamification = GamificationService(db, self.notifier)

    async def _require_member(self, jar_id: UUID, user_id: UUID) -> JarMember:
        result = await self.db.execute(
            select(JarMember).where(JarMember.jar_id == jar_id, JarMember.user_id == user_id)
        )
        member = result.scalar_one_or_none()
        if not member:
            raise NotAMemberError()
        return member

    async def _get_jar(self, jar_id: UUID) -> Jar:
        jar = await self.db.get(Jar, jar_id)
        if not jar:
            raise JarNotFoundError()
        return jar

    async def _get_idea(self, idea_id: UUID) -> Idea:
        result = await self.db.execute(
            select(Idea).where(Idea.idea_id == idea_id).options(selectinload(Idea.jar))
        )
        idea = result.scalar_one_or_none()
        if not idea:
            raise IdeaNotFoundError()
        return idea

    async def _has_active_vote(self, jar_id: UUID) -> bool:
        result = await self.db.execute(
            select(VoteSession.session_id).where(
                VoteSession.jar_id == jar_id,
                VoteSession.status == VoteSessionStatus.ACTIVE.value,
            )
        )
        return result.scalar_one_or_none() is not None

    def _normalize_category(self, category: Optional[str], topic: str) -> str:
        final = (category or default_category_for_topic(topic)).upper()
        if not is_valid_category_for_topic(final, topic):
            allowed = ", ".join(get_categories_for_topic(topic))
            raise InvalidCategoryError(
                f'The category "{final}" is not allowed in this "{topic}" jar. '
                f"Please choose one of: {allowed}"
            )
        return final

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    async def list_ideas(self, jar_id: UUID, user: User) -> list[IdeaView]:
        """All ideas of the jar, newest first, masked for the viewer."""
        await self._require_member(jar_id, user.user_id)
        result = await self.db.execute(
            select(Idea)
            .where(Idea.jar_id == jar_id)
            .options(selectinload(Idea.created_by))
            .order_by(Idea.created_at.desc())
        )
        return [mask_idea(idea, user.user_id) for idea in result.scalars().all()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def create_idea(self, jar_id: UUID, user: User, **fields) -> Idea:
        """
        Add an idea to the jar.

        - Refused while a vote is ACTIVE
        - Free jars hold at most ``free_idea_limit`` ideas
        - Category must belong to the jar topic
        - Privacy defaults to the jar's ``default_idea_private``
        """
        user_id = user.user_id
        await self._require_member(jar_id, user_id)
        jar = await self._get_jar(jar_id)

        if await self._has_active_vote(jar_id):
            raise VoteLockedError()

        if not user.is_premium:
            count = await self.db.scalar(select(func.count(Idea.idea_id)).where(Idea.jar_id == jar_id))
            if count >= self.settings.free_idea_limit:
                raise LimitReachedError(
                    f"Limit reached: Free jars are limited to {self.settings.free_idea_limit} ideas. "
                    "Upgrade to Pro for unlimited ideas!"
                )

        description = (fields.pop("description", None) or "").strip()
        if not description:
            raise BadRequestError("Description is required")

        category = self._normalize_category(fields.pop("category", None), jar.topic)
        is_private = fields.pop("is_private", None)
        if is_private is None:
            is_private = jar.default_idea_private

        idea = Idea(
            idea_id=uuid.uuid4(),
            jar_id=jar_id,
            created_by_id=user_id,
            description=description,
            category=category,
            is_private=is_private,
            status=IdeaStatus.APPROVED.value,
            **{key: value for key, value in fields.items() if value is not None and key in EDITABLE_FIELDS},
        )
        self.db.add(idea)
        await self.db.commit()
        await self.db.refresh(idea)
        logger.info(f"User {user_id} added idea {idea.idea_id} to jar {jar_id}")

        await self.gamification.award_xp(jar, self.settings.xp_idea_added)
        await self.gamification.check_and_unlock_achievements(jar)

        await self.notifier.notify_jar_members(
            jar_id,
            user_id,
            NotificationPayload(
                title="New idea added",
                body="A new idea was dropped into the jar."
                if idea.is_private or idea.is_surprise
                else f"New idea: {idea.description[:80]}",
                url=f"/dashboard?jarId={jar_id}",
            ),
            NOTIFY_IDEA_ADDED,
        )
        return idea

    async def update_idea(self, idea_id: UUID, user: User, **changes) -> Idea:
        """Edit an idea. Only its author may do so."""
        idea = await self._get_idea(idea_id)
        if idea.created_by_id != user.user_id:
            raise ForbiddenError("Only the author can edit this idea")

        if changes.get("category") is not None:
            changes["category"] = self._normalize_category(changes["category"], idea.jar.topic)
        if "description" in changes and changes["description"] is not None:
            changes["description"] = changes["description"].strip()
            if not changes["description"]:
                raise BadRequestError("Description is required")

        for field, value in changes.items():
            if field in EDITABLE_FIELDS and value is not None:
                setattr(idea, field, value)

        await self.db.commit()
        await self.db.refresh(idea)
        logger.info(f"Idea {idea_id} updated by {user.user_id}")
        return idea

    async def delete_idea(self, idea_id: UUID, user: User) -> None:
        """Delete an idea. Allowed for its author, a jar ADMIN or a site admin."""
        idea = await self._get_idea(idea_id)

        allowed = idea.created_by_id == user.user_id or self.settings.is_admin_email(user.email)
        if not allowed:
            result = await self.db.execute(
                select(JarMember).where(
                    JarMember.jar_id == idea.jar_id, JarMember.user_id == user.user_id
                )
            )
            member = result.scalar_one_or_none()
            allowed = member is not None and member.is_admin
        if not allowed:
            raise ForbiddenError("Only the author or a jar admin can delete this idea")

        await self.db.delete(idea)
        await self.db.commit()
        logger.info(f"Idea {idea_id} deleted by {user.user_id}")

    # ------------------------------------------------------------------
    # Spinning
    # ------------------------------------------------------------------
    async def spin(self, jar_id: UUID, user: User, filters: Optional[dict] = None) -> SpinResult:
        """Pick one unselected APPROVED idea uniformly at random and mark it selected."""
        filters = filters or {}
        user_id = user.user_id
        member = await self._require_member(jar_id, user_id)
        if not member.is_admin:
            raise ForbiddenError()

        jar = await self._get_jar(jar_id)
        if jar.selection_mode not in (SelectionMode.RANDOM.value, SelectionMode.ADMIN_PICK.value):
            raise BadRequestError(f"This jar uses {jar.selection_mode} selection and cannot be spun")

        min_duration = filters.get("min_duration")
        max_duration = filters.get("max_duration")
        if min_duration is not None and max_duration is not None and min_duration > max_duration:
            raise BadRequestError("min_duration cannot be greater than max_duration")

        result = await self.db.execute(
            select(Idea)
            .where(
                Idea.jar_id == jar_id,
                Idea.status == IdeaStatus.APPROVED.value,
                Idea.selected_at.is_(None),
                Idea.assigned_to_id.is_(None),
            )
            .order_by(Idea.created_at, Idea.idea_id)
        )
        candidates = [idea for idea in result.scalars().all() if matches_filters(idea, filters)]
        if not candidates:
            raise NoMatchingIdeasError()

        idea = self.rng.choice(candidates)
        idea.selected_at = utc_now()
        await self.db.commit()
        logger.info(f"Jar {jar_id} spun by {user_id}: idea {idea.idea_id} out of {len(candidates)}")

        xp = await self.gamification.award_xp(jar, self.settings.xp_jar_spun)
        achievements = await self.gamification.check_and_unlock_achievements(jar)

        await self.notifier.notify_jar_members(
            jar_id,
            user_id,
            NotificationPayload(
                title="The jar has been spun!",
                body=f"Selected: {idea.description[:80]}",
                url=f"/dashboard?jarId={jar_id}",
            ),
            NOTIFY_JAR_SPUN,
        )
        return SpinResult(idea=idea, xp=xp, achievements=achievements)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------
    async def allocate(self, jar_id: UUID, user: User, amount_per_user: int) -> int:
        """
        Hand out ``amount_per_user`` ideas to every ACTIVE member at random.

        Only unselected, unassigned APPROVED ideas take part. Assigned ideas
        stay in the jar (``selected_at`` is left empty) but are no longer
        spun. Returns the number of ideas assigned.
        """
        user_id = user.user_id
        member = await self._require_member(jar_id, user_id)
        if not member.is_admin:
            raise ForbiddenError("Only jar admins can allocate ideas")

        if amount_per_user is None or amount_per_user < 1:
            raise BadRequestError("Invalid allocation amount")

        jar = await self._get_jar(jar_id)
        if jar.selection_mode != SelectionMode.ALLOCATION.value:
            raise BadRequestError(f"This jar uses {jar.selection_mode} selection and cannot allocate ideas")

        members_result = await self.db.execute(
            select(JarMember.user_id)
            .where(JarMember.jar_id == jar_id, JarMember.status == MemberStatus.ACTIVE.value)
            .order_by(JarMember.joined_at)
        )
        member_ids = list(members_result.scalars().all())

        ideas_result = await self.db.execute(
            select(Idea)
            .where(
                Idea.jar_id == jar_id,
                Idea.status == IdeaStatus.APPROVED.value,
                Idea.selected_at.is_(None),
                Idea.assigned_to_id.is_(None),
            )
            .order_by(Idea.created_at, Idea.idea_id)
        )
        available = list(ideas_result.scalars().all())

        needed = len(member_ids) * amount_per_user
        if len(available) < needed:
            raise BadRequestError(
                f"Not enough ideas! You need {needed} ({amount_per_user} per person), "
                f"but only have {len(available)} available."
            )

        self.rng.shuffle(available)
        for index, member_id in enumerate(member_ids):
            for idea in available[index * amount_per_user:(index + 1) * amount_per_user]:
                idea.assigned_to_id = member_id
        await self.db.commit()

        logger.info(f"Jar {jar_id}: {user_id} allocated {needed} ideas to {len(member_ids)} members")
        return needed

    async def reset_jar(self, jar_id: UUID, user: User) -> int:
        """
        Empty the jar: delete every idea and the ballots cast for them.

        Past vote sessions are kept with their winner cleared. Refused while
        a vote is running. Returns the number of ideas deleted.
        """
        user_id = user.user_id
        member = await self._require_member(jar_id, user_id)
        if not member.is_admin:
            raise ForbiddenError("Only the jar admin can empty the jar.")

        if await self._has_active_vote(jar_id):
            raise VoteAlreadyInProgressError("Cannot empty the jar while a vote is in progress")

        idea_ids = select(Idea.idea_id).where(Idea.jar_id == jar_id)
        await self.db.execute(
            update(VoteSession)
            .where(VoteSession.jar_id == jar_id)
            .values(winner_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Vote).where(Vote.idea_id.in_(idea_ids)).execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            delete(Idea).where(Idea.jar_id == jar_id).execution_options(synchronize_session=False)
        )
        await self.db.commit()

        deleted = result.rowcount
        logger.info(f"Jar {jar_id} emptied by {user_id}: {deleted} ideas deleted")
        return deleted
