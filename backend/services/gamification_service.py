"""Jar XP, levels and achievements."""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.achievement import UnlockedAchievement
from backend.models.base import VoteSessionStatus
from backend.models.idea import Idea
from backend.models.jar import Jar
from backend.models.vote import VoteSession
from backend.schemas.notification import NotificationPayload
from backend.services.notification_service import (
    NotificationService,
    NOTIFY_ACHIEVEMENTS,
    NOTIFY_LEVEL_UP,
)

logger = logging.getLogger(__name__)


# (level, minimum xp, title)
LEVEL_DEFINITIONS = [
    (1, 0, "Newbie Decider"),
    (2, 100, "Curious Picker"),
    (3, 300, "Choice Explorer"),
    (4, 600, "Activity Planning Pro"),
    (5, 1000, "Decision Maker"),
    (6, 1500, "Master of Choices"),
    (7, 2200, "Executive Planner"),
    (8, 3000, "Legendary Decider"),
    (9, 4000, "Decision Guru"),
    (10, 5500, "Universe Mind"),
]

# Achievement configuration. ``counter`` names the jar statistic that is
# compared against ``target``.
ACHIEVEMENT_CONFIGS = {
    "FIRST_IDEA": {
        "title": "Idea Generator",
        "description": "Added your first idea to the jar.",
        "counter": "ideas",
        "target": 1,
        "xp": 50,
    },
    "IDEAS_10": {
        "title": "Idea Collector",
        "description": "Filled the jar with 10 ideas.",
        "counter": "ideas",
        "target": 10,
        "xp": 100,
    },
    "FIRST_SPIN": {
        "title": "First Spin",
        "description": "Picked an idea from the jar for the first time.",
        "counter": "selections",
        "target": 1,
        "xp": 50,
    },
    "SPINS_10": {
        "title": "Seasoned Spinner",
        "description": "Picked 10 ideas from the jar.",
        "counter": "selections",
        "target": 10,
        "xp": 100,
    },
    "FIRST_VOTE": {
        "title": "Democracy in Action",
        "description": "Completed your first group vote with a winner.",
        "counter": "votes_won",
        "target": 1,
        "xp": 50,
    },
}


@dataclass
class XpAward:
    xp_added: int
    total_xp: int
    level: int
    leveled_up: bool
    level_title: str


def level_for_xp(xp: int) -> tuple[int, str]:
    """Return the highest (level, title) whose threshold ``xp`` reaches."""
    level, title = 1, LEVEL_DEFINITIONS[0][2]
    for number, min_xp, name in LEVEL_DEFINITIONS:
        if xp >= min_xp:
            level, title = number, name
    return level, title


def level_title(level: int) -> str:
    for number, _, title in LEVEL_DEFINITIONS:
        if number == level:
            return title
    return "Unknown"


def next_level_progress(xp: int, level: int) -> dict:
    """Progress from the current level towards the next one."""
    current = next((d for d in LEVEL_DEFINITIONS if d[0] == level), None)
    upcoming = next((d for d in LEVEL_DEFINITIONS if d[0] == level + 1), None)

    if upcoming is None:
        return {
            "progress_percent": 100.0,
            "xp_to_next": 0,
            "current_title": current[2] if current else "Max Level",
            "next_title": "Max Level Reached",
            "next_level_xp": xp,
        }

    base_xp = current[1] if current else 0
    span = upcoming[1] - base_xp
    percent = min(100.0, max(0.0, (xp - base_xp) / span * 100))
    return {
        "progress_percent": round(percent, 1),
        "xp_to_next": max(0, upcoming[1] - xp),
        "current_title": current[2] if current else "Unknown",
        "next_title": upcoming[2],
        "next_level_xp": upcoming[1],
    }


class GamificationService:
    """Awards jar XP and unlocks achievements."""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService(db)

    async def award_xp(self, jar: Jar, amount: int) -> XpAward:
        """Add ``amount`` XP to the jar. Levels only ever go up.

        Commits the change and notifies members on a level up.
        """
        total_xp = (jar.xp or 0) + amount
        computed_level, _ = level_for_xp(total_xp)
        previous_level = jar.level or 1
        final_level = max(computed_level, previous_level)
        leveled_up = final_level > previous_level

        jar.xp = total_xp
        jar.level = final_level
        await self.db.commit()

        award = XpAward(
            xp_added=amount,
            total_xp=total_xp,
            level=final_level,
            leveled_up=leveled_up,
            level_title=level_title(final_level),
        )

        if leveled_up:
            logger.info(f"Jar {jar.jar_id} reached level {final_level} ({award.level_title})")
            await self.notifier.notify_jar_members(
                jar.jar_id,
                None,
                NotificationPayload(
                    title="Level Up!",
                    body=f"Your jar reached level {final_level}: {award.level_title}",
                    url=f"/dashboard?jarId={jar.jar_id}",
                ),
                NOTIFY_LEVEL_UP,
            )
        return award

    async def get_counters(self, jar_id: UUID) -> dict[str, int]:
        ideas = await self.db.scalar(
            select(func.count(Idea.idea_id)).where(Idea.jar_id == jar_id)
        )
        selections = await self.db.scalar(
            select(func.count(Idea.idea_id)).where(
                Idea.jar_id == jar_id, Idea.selected_at.is_not(None)
            )
        )
        votes_won = await self.db.scalar(
            select(func.count(VoteSession.session_id)).where(
                VoteSession.jar_id == jar_id,
                VoteSession.status == VoteSessionStatus.COMPLETED.value,
                VoteSession.winner_id.is_not(None),
            )
        )
        return {"ideas": ideas or 0, "selections": selections or 0, "votes_won": votes_won or 0}

    async def get_unlocked_ids(self, jar_id: UUID) -> set[str]:
        result = await self.db.execute(
            select(UnlockedAchievement.achievement_id).where(UnlockedAchievement.jar_id == jar_id)
        )
        return set(result.scalars().all())

    async def check_and_unlock_achievements(self, jar: Jar) -> list[str]:
        """Unlock every achievement whose target the jar now meets.

        Returns the ids unlocked by this call.
        """
        counters = await self.get_counters(jar.jar_id)
        unlocked = await self.get_unlocked_ids(jar.jar_id)
        new_unlocks: list[str] = []

        for achievement_id, config in ACHIEVEMENT_CONFIGS.items():
            if achievement_id in unlocked:
                continue
            if counters[config["counter"]] < config["target"]:
                continue

            self.db.add(UnlockedAchievement(jar_id=jar.jar_id, achievement_id=achievement_id))
            try:
                await self.db.commit()
            except IntegrityError:
                # Unlocked concurrently by another request
                await self.db.rollback()
                await self.db.refresh(jar)
                continue

            new_unlocks.append(achievement_id)
            logger.info(f"Jar {jar.jar_id} unlocked achievement {achievement_id}")
            await self.notifier.notify_jar_members(
                jar.jar_id,
                None,
                NotificationPayload(
                    title="Achievement Unlocked!",
                    body=f"{config['title']}: {config['description']}",
                    url=f"/dashboard?jarId={jar.jar_id}",
                ),
                NOTIFY_ACHIEVEMENTS,
            )
            await self.award_xp(jar, config["xp"])

        return new_unlocks

    async def get_progress(self, jar: Jar) -> dict:
        unlocked_result = await self.db.execute(
            select(UnlockedAchievement)
            .where(UnlockedAchievement.jar_id == jar.jar_id)
            .order_by(UnlockedAchievement.unlocked_at)
        )
        achievements = [
            {
                "achievement_id": row.achievement_id,
                "title": ACHIEVEMENT_CONFIGS.get(row.achievement_id, {}).get("title", row.achievement_id),
                "unlocked_at": row.unlocked_at,
            }
            for row in unlocked_result.scalars().all()
        ]
        return {
            "jar_id": jar.jar_id,
            "xp": jar.xp,
            "level": jar.level,
            **next_level_progress(jar.xp, jar.level),
            "achievements": achievements,
        }
