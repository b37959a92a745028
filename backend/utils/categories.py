"""Idea categories allowed for each jar topic."""
from typing import Optional

GENERAL_TOPIC = "General"
DEFAULT_CATEGORY = "ACTIVITY"

TOPIC_CATEGORIES: dict[str, list[str]] = {
    "Activities": ["ACTIVITY", "OUTDOOR", "INDOOR", "SPORT", "ADVENTURE"],
    "Food": ["MEAL", "RESTAURANT", "DESSERT", "COOKING", "DRINKS"],
    "Movies": ["MOVIE", "SERIES", "DOCUMENTARY", "ANIMATION"],
    "Books": ["FICTION", "NON_FICTION", "POETRY"],
    "Travel": ["TRIP", "DAY_TRIP", "WEEKEND_AWAY"],
    "Games": ["BOARD_GAME", "VIDEO_GAME", "CARD_GAME"],
}

# Every category known to any topic. The General topic accepts all of them.
ALL_CATEGORIES: list[str] = [DEFAULT_CATEGORY] + [
    category
    for categories in TOPIC_CATEGORIES.values()
    for category in categories
    if category != DEFAULT_CATEGORY
]


def get_categories_for_topic(topic: Optional[str]) -> list[str]:
    """Allowed categories for ``topic``. Unknown topics behave like General."""
    return TOPIC_CATEGORIES.get(topic or GENERAL_TOPIC, ALL_CATEGORIES)


def default_category_for_topic(topic: Optional[str]) -> str:
    return get_categories_for_topic(topic)[0]


def is_valid_category_for_topic(category: str, topic: Optional[str]) -> bool:
    return category.upper() in get_categories_for_topic(topic)
