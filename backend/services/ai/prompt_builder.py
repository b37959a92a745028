"""
Prompt construction and response parsing for AI idea generation.
"""
import json
import re
from typing import Optional

COSTS = ("FREE", "$", "$$", "$$$")
ACTIVITY_LEVELS = ("LOW", "MEDIUM", "HIGH")
TIMES_OF_DAY = ("ANY", "DAY", "EVENING")

_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


def build_idea_prompt(topic: str, category: str, count: int, extra: Optional[str] = None) -> str:
    """
    Build the prompt asking for ``count`` ideas for a jar.

    Args:
        topic: Jar topic, e.g. "Food" or "General"
        category: Category every idea must belong to
        count: Number of ideas wanted
        extra: Free-form wishes from the user (optional)

    Returns:
        A formatted prompt string
    """
    prompt = f"""Suggest {count} distinct ideas for a shared "{topic}" idea jar.

Every idea must belong to the category "{category}".

Rules:
- "description": short title, at most 80 characters
- "details": one or two sentences
- "cost": one of {", ".join(COSTS)}
- "duration": hours as a number between 0.5 and 12
- "activity_level": one of {", ".join(ACTIVITY_LEVELS)}
- "time_of_day": one of {", ".join(TIMES_OF_DAY)}
- "indoor": true or false"""

    if extra:
        prompt += f"""
- Take these wishes into account: "{extra.strip()}\""""

    prompt += """

Reply with a JSON array of objects only, no commentary."""
    return prompt


def _pick(value, allowed: tuple[str, ...], default: str) -> str:
    value = str(value or "").strip().upper()
    return value if value in allowed else default


def parse_idea_response(text: str, category: str, count: int) -> list[dict]:
    """
    Parse the model output into normalized suggestion dicts.

    Fields outside the allowed values fall back to defaults. Entries without
    a description are dropped.

    Raises:
        ValueError: If no JSON array can be read from ``text``
    """
    match = _JSON_ARRAY.search(text)
    if not match:
        raise ValueError("Response does not contain a JSON array")
    raw_items = json.loads(match.group(0))
    if not isinstance(raw_items, list):
        raise ValueError("Response JSON is not a list")

    suggestions = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        description = str(item.get("description") or "").strip()
        if not description:
            continue
        try:
            duration = float(item.get("duration", 1.0))
        except (TypeError, ValueError):
            duration = 1.0
        suggestions.append({
            "description": description[:500],
            "details": (str(item.get("details")).strip() or None) if item.get("details") else None,
            "category": category,
            "cost": item.get("cost") if item.get("cost") in COSTS else "FREE",
            "duration": min(max(duration, 0.25), 24.0),
            "activity_level": _pick(item.get("activity_level"), ACTIVITY_LEVELS, "LOW"),
            "time_of_day": _pick(item.get("time_of_day"), TIMES_OF_DAY, "ANY"),
            "indoor": bool(item.get("indoor", False)),
        })
    return suggestions[:count]
