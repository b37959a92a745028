"""
AI idea generation for jars.

Asks the OpenAI API for unsaved idea suggestions that fit a jar's topic. When
no API key is configured a fixed list of suggestions is returned instead, so
the feature keeps working in development and tests.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.utils.categories import default_category_for_topic, is_valid_category_for_topic
from backend.utils.exceptions import AIServiceError, InvalidCategoryError, JarNotFoundError, NotAMemberError
from .openai_api import OpenAIAPIError, generate_response
from .prompt_builder import build_idea_prompt, parse_idea_response

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

FALLBACK_SUGGESTIONS = [
    {"description": "Picnic in the park", "details": "Pack sandwiches and a blanket.",
     "cost": "$", "duration": 2.0, "activity_level": "LOW", "time_of_day": "DAY", "indoor": False},
    {"description": "Board game night", "details": "Dig out an old favourite or learn a new one.",
     "cost": "FREE", "duration": 3.0, "activity_level": "LOW", "time_of_day": "EVENING", "indoor": True},
    {"description": "Cook a new recipe together", "details": "Pick a cuisine nobody has tried at home.",
     "cost": "$$", "duration": 2.0, "activity_level": "MEDIUM", "time_of_day": "EVENING", "indoor": True},
    {"description": "Sunrise hike", "details": "Find a nearby trail with a view.",
     "cost": "FREE", "duration": 3.0, "activity_level": "HIGH", "time_of_day": "DAY", "indoor": False},
    {"description": "Visit a local museum", "details": "Check for free entry days.",
     "cost": "$", "duration": 2.5, "activity_level": "LOW", "time_of_day": "DAY", "indoor": True},
]


class IdeaGenerationService:
    """Service generating idea suggestions for a jar."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def generate_ideas(
        self,
        jar_id: UUID,
        user: User,
        category: Optional[str] = None,
        count: int = 3,
        prompt: Optional[str] = None,
    ) -> tuple[list[dict], str]:
        """
        Return ``(suggestions, source)`` where source is "ai" or "fallback".

        Raises:
            AIServiceError: If the API call fails or returns nothing usable
        """
        membership = await self.db.execute(
            select(JarMember.member_id).where(
                JarMember.jar_id == jar_id, JarMember.user_id == user.user_id
            )
        )
        if membership.scalar_one_or_none() is None:
            raise NotAMemberError()

        jar = await self.db.get(Jar, jar_id)
        if not jar:
            raise JarNotFoundError()

        count = max(1, min(count, MAX_SUGGESTIONS))
        final_category = (category or default_category_for_topic(jar.topic)).upper()
        if not is_valid_category_for_topic(final_category, jar.topic):
            raise InvalidCategoryError()

        if not self.settings.openai_api_key:
            logger.info(f"No OpenAI key configured; returning fallback ideas for jar {jar_id}")
            return [
                {**suggestion, "category": final_category}
                for suggestion in FALLBACK_SUGGESTIONS[:count]
            ], "fallback"

        request = build_idea_prompt(jar.topic, final_category, count, prompt)
        try:
            response = await generate_response(request)
            suggestions = parse_idea_response(response, final_category, count)
        except OpenAIAPIError as exc:
            logger.error(f"Idea generation failed for jar {jar_id}: {exc}")
            raise AIServiceError() from exc
        except ValueError as exc:
            logger.warning(f"Unreadable idea generation response for jar {jar_id}: {exc}")
            raise AIServiceError("Idea generation returned an unreadable response") from exc

        if not suggestions:
            raise AIServiceError("Idea generation returned no ideas")

        logger.info(f"Generated {len(suggestions)} idea(s) for jar {jar_id}")
        return suggestions, "ai"
