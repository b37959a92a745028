"""Tests for AI idea generation: prompts, parsing and the fallback path."""
import json

import pytest

from backend.services.ai import idea_generation_service as generation_module
from backend.services.ai.idea_generation_service import FALLBACK_SUGGESTIONS, IdeaGenerationService
from backend.services.ai.openai_api import OpenAIAPIError
from backend.services.ai.prompt_builder import build_idea_prompt, parse_idea_response
from backend.utils.exceptions import AIServiceError, InvalidCategoryError, NotAMemberError


@pytest.fixture
def generation_service(db_session):
    return IdeaGenerationService(db_session)


@pytest.fixture
def with_api_key(generation_service):
    generation_service.settings = generation_service.settings.model_copy(update={"openai_api_key": "sk-test"})
    return generation_service


class TestPromptBuilder:
    def test_prompt_mentions_topic_category_and_count(self):
        prompt = build_idea_prompt("Food", "DESSERT", 3)
        assert 'Suggest 3 distinct ideas for a shared "Food" idea jar.' in prompt
        assert '"DESSERT"' in prompt
        assert "JSON array" in prompt
        assert "wishes" not in prompt

    def test_prompt_includes_user_wishes(self):
        prompt = build_idea_prompt("General", "ACTIVITY", 2, "  rainy day  ")
        assert 'Take these wishes into account: "rainy day"' in prompt


class TestParsing:
    def test_parse_normalizes_fields(self):
        text = "Here you go:\n" + json.dumps([
            {"description": " Pancake brunch ", "details": "Lots of syrup", "cost": "$",
             "duration": "1.5", "activity_level": "low", "time_of_day": "day", "indoor": True},
            {"description": "Stargazing", "cost": "cheap", "duration": 99,
             "activity_level": "extreme", "time_of_day": "midnight"},
            {"description": ""},
            "not an object",
        ])

        suggestions = parse_idea_response(text, "MEAL", 5)

        assert [s["description"] for s in suggestions] == ["Pancake brunch", "Stargazing"]
        assert suggestions[0] == {
            "description": "Pancake brunch",
            "details": "Lots of syrup",
            "category": "MEAL",
            "cost": "$",
            "duration": 1.5,
            "activity_level": "LOW",
            "time_of_day": "DAY",
            "indoor": True,
        }
        stargazing = suggestions[1]
        assert stargazing["cost"] == "FREE"
        assert stargazing["duration"] == 24.0
        assert stargazing["activity_level"] == "LOW"
        assert stargazing["time_of_day"] == "ANY"
        assert stargazing["details"] is None

    def test_parse_truncates_to_count(self):
        text = json.dumps([{"description": f"Idea {i}"} for i in range(4)])
        assert len(parse_idea_response(text, "ACTIVITY", 2)) == 2

    def test_parse_without_json_array(self):
        with pytest.raises(ValueError):
            parse_idea_response("Sorry, I cannot help with that.", "ACTIVITY", 3)


class TestGenerateIdeas:
    async def test_fallback_without_api_key(self, generation_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin)
        generation_service.settings = generation_service.settings.model_copy(update={"openai_api_key": ""})

        suggestions, source = await generation_service.generate_ideas(jar.jar_id, admin, count=2)

        assert source == "fallback"
        assert [s["description"] for s in suggestions] == [s["description"] for s in FALLBACK_SUGGESTIONS[:2]]
        assert all(s["category"] == "ACTIVITY" for s in suggestions)

    async def test_count_is_clamped(self, generation_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin)
        generation_service.settings = generation_service.settings.model_copy(update={"openai_api_key": ""})

        suggestions, _ = await generation_service.generate_ideas(jar.jar_id, admin, count=50)

        assert len(suggestions) == len(FALLBACK_SUGGESTIONS)

    async def test_outsider(self, generation_service, user_factory, jar_factory):
        admin = await user_factory()
        outsider = await user_factory()
        jar = await jar_factory(admin)
        with pytest.raises(NotAMemberError):
            await generation_service.generate_ideas(jar.jar_id, outsider)

    async def test_category_must_fit_topic(self, generation_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, topic="Food")
        with pytest.raises(InvalidCategoryError):
            await generation_service.generate_ideas(jar.jar_id, admin, category="SPORT")

    async def test_ai_path(self, with_api_key, user_factory, jar_factory, monkeypatch):
        admin = await user_factory()
        jar = await jar_factory(admin, topic="Food")
        prompts = []

        async def fake_generate(prompt):
            prompts.append(prompt)
            return json.dumps([{"description": "Dumpling workshop", "cost": "$$", "indoor": True}])

        monkeypatch.setattr(generation_module, "generate_response", fake_generate)

        suggestions, source = await with_api_key.generate_ideas(
            jar.jar_id, admin, category="cooking", count=1, prompt="something hands-on"
        )

        assert source == "ai"
        assert suggestions[0]["description"] == "Dumpling workshop"
        assert suggestions[0]["category"] == "COOKING"
        assert "something hands-on" in prompts[0]

    async def test_api_failure(self, with_api_key, user_factory, jar_factory, monkeypatch):
        admin = await user_factory()
        jar = await jar_factory(admin)

        async def failing_generate(prompt):
            raise OpenAIAPIError("OpenAI API error: boom")

        monkeypatch.setattr(generation_module, "generate_response", failing_generate)

        with pytest.raises(AIServiceError) as exc_info:
            await with_api_key.generate_ideas(jar.jar_id, admin)
        assert exc_info.value.status_code == 502

    async def test_unreadable_response(self, with_api_key, user_factory, jar_factory, monkeypatch):
        admin = await user_factory()
        jar = await jar_factory(admin)

        async def chatty_generate(prompt):
            return "I would suggest going for a walk."

        monkeypatch.setattr(generation_module, "generate_response", chatty_generate)

        with pytest.raises(AIServiceError, match="unreadable"):
            await with_api_key.generate_ideas(jar.jar_id, admin)

    async def test_empty_suggestion_list(self, with_api_key, user_factory, jar_factory, monkeypatch):
        admin = await user_factory()
        jar = await jar_factory(admin)

        async def empty_generate(prompt):
            return "[]"

        monkeypatch.setattr(generation_module, "generate_response", empty_generate)

        with pytest.raises(AIServiceError, match="no ideas"):
            await with_api_key.generate_ideas(jar.jar_id, admin)
