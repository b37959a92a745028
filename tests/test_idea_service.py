"""Tests for IdeaService: adding, masking, editing and spinning ideas."""
import pytest
from sqlalchemy import func, select

from backend.models.idea import Idea
from backend.models.vote import Vote, VoteSession
from backend.services.idea_service import (
    SECRET_MASK,
    SURPRISE_MASK,
    IdeaService,
    mask_idea,
    matches_filters,
)
from backend.services.vote_service import VoteService
from backend.utils.datetime_helpers import utc_now
from backend.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidCategoryError,
    LimitReachedError,
    NoMatchingIdeasError,
    NotAMemberError,
    VoteAlreadyInProgressError,
    VoteLockedError,
)


@pytest.fixture
def idea_service(db_session, notifier, rng):
    return IdeaService(db_session, notifier=notifier, rng=rng)


def make_idea(**overrides) -> Idea:
    fields = dict(
        description="Ramen night",
        category="MEAL",
        cost="$$",
        duration=2.0,
        activity_level="MEDIUM",
        time_of_day="EVENING",
        indoor=True,
        is_private=False,
        is_surprise=False,
        selected_at=None,
    )
    fields.update(overrides)
    return Idea(**fields)


class TestFilters:
    def test_empty_filters_match(self):
        assert matches_filters(make_idea(), {})

    def test_category_is_case_insensitive(self):
        assert matches_filters(make_idea(), {"category": "meal"})
        assert not matches_filters(make_idea(), {"category": "DESSERT"})

    def test_any_time_of_day_matches_everything(self):
        assert matches_filters(make_idea(time_of_day="ANY"), {"time_of_day": "DAY"})
        assert matches_filters(make_idea(), {"time_of_day": "ANY"})
        assert not matches_filters(make_idea(), {"time_of_day": "DAY"})

    def test_duration_bounds(self):
        assert matches_filters(make_idea(), {"min_duration": 2.0, "max_duration": 2.0})
        assert not matches_filters(make_idea(), {"min_duration": 2.5})
        assert not matches_filters(make_idea(), {"max_duration": 1.5})

    def test_cost_and_activity_ceilings(self):
        assert matches_filters(make_idea(), {"max_cost": "$$$"})
        assert not matches_filters(make_idea(), {"max_cost": "$"})
        assert matches_filters(make_idea(), {"max_activity_level": "HIGH"})
        assert not matches_filters(make_idea(), {"max_activity_level": "LOW"})

    def test_indoor(self):
        assert matches_filters(make_idea(), {"indoor": True})
        assert not matches_filters(make_idea(), {"indoor": False})


class TestMasking:
    def test_private_idea_is_hidden_from_others(self):
        author_id, viewer_id = object(), object()
        view = mask_idea(make_idea(created_by_id=author_id, is_private=True), viewer_id)

        assert view.is_masked
        assert (view.description, view.details) == SECRET_MASK

    def test_surprise_mask_wins_over_secret_mask(self):
        view = mask_idea(make_idea(created_by_id=1, is_private=True, is_surprise=True), 2)
        assert (view.description, view.details) == SURPRISE_MASK

    def test_author_sees_own_idea(self):
        view = mask_idea(make_idea(created_by_id=1, is_private=True), 1)
        assert not view.is_masked
        assert view.description == "Ramen night"

    def test_selected_ideas_are_revealed(self):
        view = mask_idea(make_idea(created_by_id=1, is_surprise=True, selected_at=utc_now()), 2)
        assert not view.is_masked


class TestCreateIdea:
    async def test_create_awards_xp_and_notifies(self, idea_service, db_session, user_factory, jar_factory,
                                                 notifier):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))

        idea = await idea_service.create_idea(jar.jar_id, member, description="  Mini golf  ")

        assert idea.description == "Mini golf"
        assert idea.category == "ACTIVITY"
        assert idea.created_by_id == member.user_id
        await db_session.refresh(jar)
        assert jar.xp == idea_service.settings.xp_idea_added + 50
        assert "FIRST_IDEA" in await idea_service.gamification.get_unlocked_ids(jar.jar_id)

        idea_calls = [call for call in notifier.calls if call["preference"] == "notify_idea_added"]
        assert len(idea_calls) == 1
        assert idea_calls[0]["exclude_user_id"] == member.user_id
        assert idea_calls[0]["payload"].body == "New idea: Mini golf"

    async def test_failed_fan_out_still_returns_the_idea(self, db_session, rng, user_factory, jar_factory,
                                                         failing_fan_out):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))
        service = IdeaService(db_session, rng=rng)

        idea = await service.create_idea(jar.jar_id, member, description="Karaoke")

        assert idea.description == "Karaoke"
        stored = await db_session.scalar(select(Idea).where(Idea.idea_id == idea.idea_id))
        assert stored is not None

    async def test_private_ideas_do_not_leak_in_notifications(self, idea_service, user_factory, jar_factory,
                                                              notifier):
        admin = await user_factory()
        jar = await jar_factory(admin)

        await idea_service.create_idea(jar.jar_id, admin, description="Secret trip", is_private=True)

        bodies = [call["payload"].body for call in notifier.calls if call["preference"] == "notify_idea_added"]
        assert bodies == ["A new idea was dropped into the jar."]

    async def test_topic_default_category(self, idea_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, topic="Food")
        idea = await idea_service.create_idea(jar.jar_id, admin, description="Tacos")
        assert idea.category == "MEAL"

    async def test_category_must_fit_topic(self, idea_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, topic="Food")

        with pytest.raises(InvalidCategoryError):
            await idea_service.create_idea(jar.jar_id, admin, description="Hike", category="OUTDOOR")

        idea = await idea_service.create_idea(jar.jar_id, admin, description="Gelato", category="dessert")
        assert idea.category == "DESSERT"

    async def test_jar_privacy_default(self, idea_service, db_session, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin)
        jar.default_idea_private = True
        await db_session.commit()

        hidden = await idea_service.create_idea(jar.jar_id, admin, description="Hidden")
        shown = await idea_service.create_idea(jar.jar_id, admin, description="Shown", is_private=False)

        assert hidden.is_private is True
        assert shown.is_private is False

    async def test_blank_description(self, idea_service, user_factory, jar_factory):
        admin = await user_factory()
        jar = await jar_factory(admin)
        with pytest.raises(BadRequestError):
            await idea_service.create_idea(jar.jar_id, admin, description="   ")

    async def test_outsider_cannot_add(self, idea_service, user_factory, jar_factory):
        admin = await user_factory()
        outsider = await user_factory()
        jar = await jar_factory(admin)
        with pytest.raises(NotAMemberError):
            await idea_service.create_idea(jar.jar_id, outsider, description="Sneaky")

    async def test_locked_while_voting(self, idea_service, db_session, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))
        await idea_factory(jar, member)
        await idea_factory(jar, member)
        await VoteService(db_session).start_vote(jar.jar_id, admin)

        with pytest.raises(VoteLockedError):
            await idea_service.create_idea(jar.jar_id, member, description="Too late")

    async def test_free_jars_are_capped(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        jar = await jar_factory(admin)
        idea_service.settings = idea_service.settings.model_copy(update={"free_idea_limit": 2})
        await idea_factory(jar, admin)
        await idea_factory(jar, admin)

        with pytest.raises(LimitReachedError):
            await idea_service.create_idea(jar.jar_id, admin, description="One too many")


class TestListAndEdit:
    async def test_list_masks_other_peoples_secrets(self, idea_service, user_factory, jar_factory,
                                                    idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))
        await idea_factory(jar, admin, "Public plan")
        await idea_factory(jar, admin, "Anniversary dinner", is_surprise=True)

        views = await idea_service.list_ideas(jar.jar_id, member)

        descriptions = {view.description for view in views}
        assert descriptions == {"Public plan", SURPRISE_MASK[0]}

        own_views = await idea_service.list_ideas(jar.jar_id, admin)
        assert {view.description for view in own_views} == {"Public plan", "Anniversary dinner"}

    async def test_only_author_edits(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))
        idea = await idea_factory(jar, member, "Bowling")

        with pytest.raises(ForbiddenError):
            await idea_service.update_idea(idea.idea_id, admin, description="Darts")

        updated = await idea_service.update_idea(idea.idea_id, member, description="Darts", cost="$")
        assert updated.description == "Darts"
        assert updated.cost == "$"

    async def test_jar_admin_may_delete(self, idea_service, db_session, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        other = await user_factory()
        jar = await jar_factory(admin, members=(member, other))
        idea = await idea_factory(jar, member)
        idea_id = idea.idea_id

        with pytest.raises(ForbiddenError):
            await idea_service.delete_idea(idea_id, other)

        await idea_service.delete_idea(idea_id, admin)
        result = await db_session.execute(select(Idea.idea_id).where(Idea.idea_id == idea_id))
        assert result.scalar_one_or_none() is None


class TestSpin:
    async def test_spin_selects_and_rewards(self, idea_service, db_session, user_factory, jar_factory,
                                            idea_factory, notifier):
        admin = await user_factory()
        jar = await jar_factory(admin, selection_mode="RANDOM")
        pizza = await idea_factory(jar, admin, "Pizza", category="MEAL")
        await idea_factory(jar, admin, "Karaoke", category="ACTIVITY")

        result = await idea_service.spin(jar.jar_id, admin, {"category": "MEAL"})

        assert result.idea.idea_id == pizza.idea_id
        assert result.idea.selected_at is not None
        assert result.xp.xp_added == idea_service.settings.xp_jar_spun
        assert "FIRST_SPIN" in result.achievements
        assert "The jar has been spun!" in notifier.titles

    async def test_selected_ideas_are_not_spun_again(self, idea_service, user_factory, jar_factory,
                                                     idea_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, selection_mode="RANDOM")
        await idea_factory(jar, admin)

        await idea_service.spin(jar.jar_id, admin)
        with pytest.raises(NoMatchingIdeasError):
            await idea_service.spin(jar.jar_id, admin)

    async def test_vote_jars_cannot_be_spun(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, selection_mode="VOTE")
        await idea_factory(jar, admin)
        with pytest.raises(BadRequestError):
            await idea_service.spin(jar.jar_id, admin)

    async def test_members_cannot_spin(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,), selection_mode="RANDOM")
        await idea_factory(jar, admin)
        with pytest.raises(ForbiddenError):
            await idea_service.spin(jar.jar_id, member)

    async def test_inverted_duration_range(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, selection_mode="RANDOM")
        await idea_factory(jar, admin)
        with pytest.raises(BadRequestError):
            await idea_service.spin(jar.jar_id, admin, {"min_duration": 3, "max_duration": 1})

    async def test_assigned_ideas_are_not_spun(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,), selection_mode="RANDOM")
        await idea_factory(jar, admin, "Taken", assigned_to_id=member.user_id)

        with pytest.raises(NoMatchingIdeasError):
            await idea_service.spin(jar.jar_id, admin)


async def _assignment_counts(db_session, jar_id) -> dict:
    result = await db_session.execute(
        select(Idea.assigned_to_id, func.count(Idea.idea_id))
        .where(Idea.jar_id == jar_id)
        .group_by(Idea.assigned_to_id)
    )
    return dict(result.all())


class TestAllocate:
    @pytest.fixture
    async def allocation_jar(self, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        bob = await user_factory()
        cara = await user_factory()
        jar = await jar_factory(admin, members=(bob, cara), selection_mode="ALLOCATION")
        for index in range(7):
            await idea_factory(jar, admin, f"Chore {index}")
        return jar, (admin, bob, cara)

    async def test_every_member_gets_the_same_share(self, idea_service, db_session, allocation_jar):
        jar, members = allocation_jar

        allocated = await idea_service.allocate(jar.jar_id, members[0], amount_per_user=2)

        assert allocated == 6
        counts = await _assignment_counts(db_session, jar.jar_id)
        assert {member.user_id: counts.get(member.user_id) for member in members} == {
            member.user_id: 2 for member in members
        }
        assert counts[None] == 1
        selected = await db_session.scalar(
            select(func.count(Idea.idea_id)).where(Idea.jar_id == jar.jar_id, Idea.selected_at.is_not(None))
        )
        assert selected == 0

    async def test_assigned_ideas_are_not_handed_out_twice(self, idea_service, allocation_jar):
        jar, (admin, _, _) = allocation_jar

        assert await idea_service.allocate(jar.jar_id, admin, amount_per_user=1) == 3
        assert await idea_service.allocate(jar.jar_id, admin, amount_per_user=1) == 3
        with pytest.raises(BadRequestError, match="only have 1 available"):
            await idea_service.allocate(jar.jar_id, admin, amount_per_user=1)

    async def test_not_enough_ideas(self, idea_service, db_session, allocation_jar):
        jar, (admin, _, _) = allocation_jar

        with pytest.raises(BadRequestError) as exc_info:
            await idea_service.allocate(jar.jar_id, admin, amount_per_user=3)

        assert exc_info.value.message == (
            "Not enough ideas! You need 9 (3 per person), but only have 7 available."
        )
        assert await _assignment_counts(db_session, jar.jar_id) == {None: 7}

    async def test_invalid_amount(self, idea_service, allocation_jar):
        jar, (admin, _, _) = allocation_jar
        with pytest.raises(BadRequestError, match="Invalid allocation amount"):
            await idea_service.allocate(jar.jar_id, admin, amount_per_user=0)

    async def test_member_cannot_allocate(self, idea_service, allocation_jar):
        jar, (_, bob, _) = allocation_jar
        with pytest.raises(ForbiddenError):
            await idea_service.allocate(jar.jar_id, bob, amount_per_user=1)

    async def test_other_selection_modes_cannot_allocate(self, idea_service, user_factory, jar_factory,
                                                          idea_factory):
        admin = await user_factory()
        jar = await jar_factory(admin, selection_mode="RANDOM")
        await idea_factory(jar, admin)
        with pytest.raises(BadRequestError):
            await idea_service.allocate(jar.jar_id, admin, amount_per_user=1)


class TestResetJar:
    async def test_reset_clears_ideas_ballots_and_winners(self, idea_service, db_session, user_factory,
                                                          jar_factory, idea_factory):
        admin = await user_factory()
        bob = await user_factory()
        cara = await user_factory()
        jar = await jar_factory(admin, members=(bob, cara))
        bowling = await idea_factory(jar, bob, "Bowling")
        await idea_factory(jar, cara, "Cinema")
        vote_service = VoteService(db_session)
        await vote_service.start_vote(jar.jar_id, admin)
        await vote_service.cast_vote(jar.jar_id, admin, bowling.idea_id)
        await vote_service.resolve_vote(jar.jar_id)

        deleted = await idea_service.reset_jar(jar.jar_id, admin)

        assert deleted == 2
        assert await db_session.scalar(select(func.count(Idea.idea_id)).where(Idea.jar_id == jar.jar_id)) == 0
        assert await db_session.scalar(select(func.count(Vote.vote_id))) == 0
        winners = await db_session.execute(select(VoteSession.winner_id).where(VoteSession.jar_id == jar.jar_id))
        assert winners.scalars().all() == [None]

    async def test_reset_is_refused_during_a_vote(self, idea_service, db_session, user_factory, jar_factory,
                                                  idea_factory):
        admin = await user_factory()
        member = await user_factory()
        other = await user_factory()
        jar = await jar_factory(admin, members=(member, other))
        await idea_factory(jar, member)
        await idea_factory(jar, other)
        await VoteService(db_session).start_vote(jar.jar_id, admin)

        with pytest.raises(VoteAlreadyInProgressError):
            await idea_service.reset_jar(jar.jar_id, admin)

    async def test_member_cannot_reset(self, idea_service, user_factory, jar_factory, idea_factory):
        admin = await user_factory()
        member = await user_factory()
        jar = await jar_factory(admin, members=(member,))
        await idea_factory(jar, member)
        with pytest.raises(ForbiddenError):
            await idea_service.reset_jar(jar.jar_id, member)
