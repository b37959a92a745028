"""Vote service for group voting rounds inside a jar.

A jar has at most one ACTIVE vote session. Members cast one ballot each;
resolution tallies the ballots and either completes the session with a
winner, completes it empty, or (tie under RE_VOTE) completes it and opens a
runoff round restricted to the tied ideas.
"""
import logging
import random
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from backend.config import get_settings
from backend.models.base import (
    IdeaStatus,
    MemberRole,
    MemberStatus,
    TieBreakerMode,
    VoteSessionStatus,
    can_transition,
)
from backend.models.idea import Idea
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.models.vote import Vote, VoteSession
from backend.schemas.notification import NotificationPayload
from backend.services.gamification_service import GamificationService
from backend.services.notification_service import NotificationService, NOTIFY_VOTING
from backend.utils.datetime_helpers import ensure_utc, is_past, utc_now
from backend.utils.exceptions import (
    AlreadyVotedError,
    BadRequestError,
    EmptyJarError,
    ForbiddenError,
    IdeaIneligibleError,
    IdeaNotFoundError,
    InvalidTransitionError,
    NoActiveVoteError,
    NotAMemberError,
    NoTimeLimitError,
    SelfVoteError,
    VoteAlreadyInProgressError,
    VoteWindowClosedError,
)

logger = logging.getLogger(__name__)

METHOD_MAJORITY = "MAJORITY"
METHOD_RANDOM_TIEBREAK = "RANDOM_TIEBREAK"
METHOD_AUTOMATIC = "AUTOMATIC"

NOTE_SINGLE_CHOICE = "Only one choice available."
NOTE_GUARANTEED_TIE = "Guaranteed tie in 2-person jar. Picking at random."


@dataclass(frozen=True)
class NoVotesOutcome:
    """The session closed without a single ballot."""


@dataclass(frozen=True)
class WinnerOutcome:
    winner_id: UUID
    method: str


@dataclass(frozen=True)
class RunoffOutcome:
    next_session: VoteSession


ResolutionOutcome = Union[NoVotesOutcome, WinnerOutcome, RunoffOutcome]


@dataclass
class StartVoteResult:
    """A freshly opened session, or one completed at once when voting was pointless."""
    session: VoteSession
    outcome: Optional[WinnerOutcome] = None
    note: Optional[str] = None


def tally_votes(idea_ids: Iterable[UUID]) -> Counter:
    """Count ballots per idea, keeping first-seen order."""
    return Counter(idea_ids)


def leading_ideas(counts: Counter) -> list[UUID]:
    """Ids sharing the highest count, in first-seen order. Empty when nobody voted."""
    if not counts:
        return []
    top = max(counts.values())
    return [idea_id for idea_id, count in counts.items() if count == top]


class VoteService:
    """Service for starting, casting, resolving and inspecting jar votes."""

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

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def require_member(self, jar_id: UUID, user_id: UUID) -> JarMember:
        result = await self.db.execute(
            select(JarMember).where(JarMember.jar_id == jar_id, JarMember.user_id == user_id)
        )
        member = result.scalar_one_or_none()
        if not member:
            raise NotAMemberError()
        return member

    async def require_admin(self, jar_id: UUID, user_id: UUID) -> JarMember:
        member = await self.require_member(jar_id, user_id)
        if not member.is_admin:
            raise ForbiddenError()
        return member

    async def get_active_session(self, jar_id: UUID) -> Optional[VoteSession]:
        result = await self.db.execute(
            select(VoteSession)
            .where(
                VoteSession.jar_id == jar_id,
                VoteSession.status == VoteSessionStatus.ACTIVE.value,
            )
            .options(selectinload(VoteSession.votes))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _available_ideas(self, jar_id: UUID) -> list[Idea]:
        result = await self.db.execute(
            select(Idea)
            .where(
                Idea.jar_id == jar_id,
                Idea.status == IdeaStatus.APPROVED.value,
                Idea.selected_at.is_(None),
            )
            .order_by(Idea.created_at, Idea.idea_id)
        )
        return list(result.scalars().all())

    async def _active_member_ids(self, jar_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(JarMember.user_id).where(
                JarMember.jar_id == jar_id,
                JarMember.status == MemberStatus.ACTIVE.value,
            )
        )
        return list(result.scalars().all())

    async def count_eligible_voters(self, session: VoteSession) -> int:
        """Active members for whom at least one candidate was authored by someone else.

        Never less than one.
        """
        pool_ids = session.eligible_ids
        if pool_ids:
            result = await self.db.execute(
                select(Idea.created_by_id).where(Idea.idea_id.in_(pool_ids))
            )
            authors = list(result.scalars().all())
        else:
            authors = [idea.created_by_id for idea in await self._available_ideas(session.jar_id)]

        eligible = 0
        for user_id in await self._active_member_ids(session.jar_id):
            if any(author != user_id for author in authors):
                eligible += 1
        return eligible or 1

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------
    async def _claim_session(
        self, session: VoteSession, target: VoteSessionStatus, **values
    ) -> None:
        """Move an ACTIVE session to ``target`` with a compare-and-set update.

        Exactly one caller can claim a given session. Losers get
        NoActiveVoteError and their transaction is rolled back.
        """
        if not can_transition(session.status, target):
            raise InvalidTransitionError(
                f"Vote session cannot move from {session.status} to {target.value}"
            )

        # Rollback expires the instance, so keep the key as a plain value
        session_id = session.session_id
        result = await self.db.execute(
            update(VoteSession)
            .where(
                VoteSession.session_id == session_id,
                VoteSession.status == VoteSessionStatus.ACTIVE.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.info(f"Vote session {session_id} was already closed by another request")
            raise NoActiveVoteError()

        set_committed_value(session, "status", target.value)
        for key, value in values.items():
            set_committed_value(session, key, value)

    async def _select_winner(self, winner_id: UUID, now) -> None:
        idea = await self.db.get(Idea, winner_id)
        if idea is not None:
            idea.selected_at = now

    async def _reward_winner(self, jar_id: UUID) -> None:
        jar = await self.db.get(Jar, jar_id)
        if jar is None:
            return
        await self.gamification.award_xp(jar, self.settings.xp_vote_completed)
        await self.gamification.check_and_unlock_achievements(jar)

    async def _notify(self, jar_id: UUID, exclude_user_id: Optional[UUID], title: str, body: str,
                      url: Optional[str] = None) -> None:
        await self.notifier.notify_jar_members(
            jar_id,
            exclude_user_id,
            NotificationPayload(title=title, body=body, url=url or f"/dashboard?jarId={jar_id}"),
            NOTIFY_VOTING,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def start_vote(
        self,
        jar_id: UUID,
        user: User,
        tie_breaker_mode: Optional[str] = None,
        time_limit_minutes: Optional[int] = None,
        mandatory: Optional[bool] = None,
    ) -> StartVoteResult:
        """
        Open a voting round for the jar.

        - Caller must be a jar ADMIN
        - No other session may be ACTIVE
        - Candidates are the unselected APPROVED ideas, or a random shortlist
          of ``vote_candidates_count`` of them
        - A vote with one candidate, or a guaranteed tie between two members
          who each wrote one candidate, completes immediately

        ``mandatory`` is accepted for client compatibility and has no effect.
        """
        user_id = user.user_id
        await self.require_admin(jar_id, user_id)

        if await self.get_active_session(jar_id) is not None:
            raise VoteAlreadyInProgressError()

        try:
            mode = TieBreakerMode(tie_breaker_mode or self.settings.vote_default_tie_breaker)
        except ValueError as exc:
            raise BadRequestError(f"Invalid tie breaker mode: {tie_breaker_mode}") from exc

        ideas = await self._available_ideas(jar_id)
        if not ideas:
            raise EmptyJarError()

        jar = await self.db.get(Jar, jar_id)
        shortlist_size = jar.vote_candidates_count or 0
        if shortlist_size > 0:
            candidates = self.rng.sample(ideas, min(shortlist_size, len(ideas)))
        else:
            candidates = ideas

        now = utc_now()
        session = VoteSession(
            session_id=uuid.uuid4(),
            jar_id=jar_id,
            status=VoteSessionStatus.ACTIVE.value,
            tie_breaker_mode=mode.value,
            start_time=now,
            end_time=now + timedelta(minutes=time_limit_minutes) if time_limit_minutes else None,
            round=1,
            eligible_idea_ids=[str(idea.idea_id) for idea in candidates],
            created_by_id=user_id,
        )
        self.db.add(session)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Another request opened a session between the check and the insert
            await self.db.rollback()
            raise VoteAlreadyInProgressError() from exc

        winner_id, note = await self._detect_pointless_vote(jar_id, candidates)
        if winner_id is not None:
            session.transition(VoteSessionStatus.COMPLETED)
            session.winner_id = winner_id
            session.resolved_at = now
            await self._select_winner(winner_id, now)
            await self.db.commit()

            logger.info(f"Vote {session.session_id} in jar {jar_id} resolved at start: {note}")
            await self._notify(jar_id, None, "Quick Result!",
                               f"{note} Winner: Selected automatically.")
            await self._reward_winner(jar_id)
            return StartVoteResult(
                session=session,
                outcome=WinnerOutcome(winner_id=winner_id, method=METHOD_AUTOMATIC),
                note=note,
            )

        await self.db.commit()
        logger.info(
            f"Started vote {session.session_id} in jar {jar_id}: {len(candidates)} candidates, "
            f"tie breaker {mode.value}, ends {session.end_time}"
        )
        await self._notify(
            jar_id,
            user_id,
            "New Vote Started!",
            "A new voting session has begun. Cast your vote now!",
            url=f"/dashboard?jarId={jar_id}&mode=vote",
        )
        return StartVoteResult(session=session)

    async def _detect_pointless_vote(
        self, jar_id: UUID, candidates: list[Idea]
    ) -> tuple[Optional[UUID], Optional[str]]:
        if len(candidates) == 1:
            return candidates[0].idea_id, NOTE_SINGLE_CHOICE

        if len(candidates) == 2:
            members = await self._active_member_ids(jar_id)
            authors = {idea.created_by_id for idea in candidates}
            if len(members) == 2 and len(authors) == 2:
                return self.rng.choice(candidates).idea_id, NOTE_GUARANTEED_TIE

        return None, None

    async def cast_vote(self, jar_id: UUID, user: User, idea_id: UUID) -> Optional[ResolutionOutcome]:
        """
        Record the caller's ballot.

        Checks run in order: membership, active session, deadline, previous
        ballot, candidate restriction, idea existence, authorship. When every
        eligible voter has voted the session is resolved at once and the
        outcome is returned, otherwise None.
        """
        user_id = user.user_id
        await self.require_member(jar_id, user_id)

        session = await self.get_active_session(jar_id)
        if session is None:
            raise NoActiveVoteError(status_code=400)
        session_id = session.session_id

        if is_past(session.end_time):
            raise VoteWindowClosedError()

        if any(vote.user_id == user_id for vote in session.votes):
            raise AlreadyVotedError()

        eligible_ids = session.eligible_ids
        if eligible_ids and idea_id not in eligible_ids:
            raise IdeaIneligibleError()

        idea = await self.db.get(Idea, idea_id)
        if idea is None or idea.jar_id != jar_id:
            raise IdeaNotFoundError()

        if idea.created_by_id == user_id:
            raise SelfVoteError()

        self.db.add(Vote(vote_id=uuid.uuid4(), session_id=session_id, user_id=user_id, idea_id=idea_id))
        try:
            await self.db.commit()
        except IntegrityError as exc:
            # Concurrent double submit from the same member
            await self.db.rollback()
            raise AlreadyVotedError() from exc

        logger.info(f"User {user_id} voted in session {session_id}")

        votes_cast = await self.db.scalar(
            select(func.count(Vote.vote_id)).where(Vote.session_id == session_id)
        )
        eligible_voters = await self.count_eligible_voters(session)
        if votes_cast < eligible_voters:
            return None

        logger.info(
            f"Auto-resolving session {session_id}: all {eligible_voters} eligible members voted"
        )
        try:
            return await self.resolve_vote(jar_id)
        except NoActiveVoteError:
            # Resolved concurrently; the ballot is already recorded
            return None

    async def resolve_vote(self, jar_id: UUID) -> ResolutionOutcome:
        """
        Tally the ACTIVE session and close it.

        - No ballots: COMPLETED without a winner
        - One leader: COMPLETED with that winner, idea marked selected
        - Tie under RANDOM_PICK: one tied idea chosen at random
        - Tie under RE_VOTE: COMPLETED without a winner and a runoff round
          opened over the tied ideas, always with RANDOM_PICK
        """
        session = await self.get_active_session(jar_id)
        if session is None:
            raise NoActiveVoteError()

        leaders = leading_ideas(tally_votes(vote.idea_id for vote in session.votes))
        now = utc_now()

        if not leaders:
            await self._claim_session(session, VoteSessionStatus.COMPLETED, resolved_at=now)
            await self.db.commit()
            logger.info(f"Vote {session.session_id} in jar {jar_id} closed with no votes")
            return NoVotesOutcome()

        if len(leaders) > 1 and session.tie_breaker_mode == TieBreakerMode.RE_VOTE.value:
            return await self._open_runoff(session, leaders, now)

        if len(leaders) == 1:
            winner_id, method = leaders[0], METHOD_MAJORITY
            title, body = "Vote Complete!", "We have a winner! Tap to see the result."
        else:
            winner_id, method = self.rng.choice(leaders), METHOD_RANDOM_TIEBREAK
            title, body = "Vote Tie!", "The vote ended in a tie. A random winner was picked."

        await self._claim_session(
            session, VoteSessionStatus.COMPLETED, winner_id=winner_id, resolved_at=now
        )
        await self._select_winner(winner_id, now)
        await self.db.commit()

        logger.info(f"Vote {session.session_id} in jar {jar_id} won by idea {winner_id} ({method})")
        await self._notify(jar_id, None, title, body)
        await self._reward_winner(jar_id)
        return WinnerOutcome(winner_id=winner_id, method=method)

    async def _open_runoff(self, session: VoteSession, tied_ids: list[UUID], now) -> RunoffOutcome:
        # The COMPLETED update runs before the insert so the one-active-session
        # index never sees two ACTIVE rows.
        await self._claim_session(session, VoteSessionStatus.COMPLETED, resolved_at=now)

        next_session = VoteSession(
            session_id=uuid.uuid4(),
            jar_id=session.jar_id,
            status=VoteSessionStatus.ACTIVE.value,
            tie_breaker_mode=TieBreakerMode.RANDOM_PICK.value,
            start_time=now,
            end_time=now + timedelta(minutes=self.settings.vote_runoff_minutes) if session.end_time else None,
            round=session.round + 1,
            eligible_idea_ids=[str(idea_id) for idea_id in tied_ids],
            created_by_id=session.created_by_id,
        )
        self.db.add(next_session)
        await self.db.commit()

        logger.info(
            f"Vote {session.session_id} in jar {session.jar_id} tied between {len(tied_ids)} ideas; "
            f"runoff round {next_session.round} opened as {next_session.session_id}"
        )
        await self._notify(
            session.jar_id,
            None,
            "Vote Tie - Runoff!",
            "The vote was a tie! A runoff round has started.",
            url=f"/dashboard?jarId={session.jar_id}&mode=vote",
        )
        return RunoffOutcome(next_session=next_session)

    async def cancel_vote(self, jar_id: UUID, user: User) -> VoteSession:
        user_id = user.user_id
        await self.require_admin(jar_id, user_id)
        session = await self.get_active_session(jar_id)
        if session is None:
            raise NoActiveVoteError()

        await self._claim_session(session, VoteSessionStatus.CANCELLED, resolved_at=utc_now())
        await self.db.commit()
        logger.info(f"Vote {session.session_id} in jar {jar_id} cancelled by {user_id}")
        return session

    async def extend_vote(self, jar_id: UUID, user: User) -> VoteSession:
        """Push the deadline back by ``vote_extend_minutes``."""
        await self.require_admin(jar_id, user.user_id)
        session = await self.get_active_session(jar_id)
        if session is None:
            raise NoActiveVoteError()
        if session.end_time is None:
            raise NoTimeLimitError()

        session.end_time = ensure_utc(session.end_time) + timedelta(minutes=self.settings.vote_extend_minutes)
        await self.db.commit()
        logger.info(f"Vote {session.session_id} in jar {jar_id} extended to {session.end_time}")
        return session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_vote_state(self, jar_id: UUID, user: User) -> dict:
        """
        Current vote state for a member.

        An ACTIVE session whose deadline has passed is resolved first, so the
        caller always sees the post-resolution state.
        """
        user_id = user.user_id
        await self.require_member(jar_id, user_id)

        session = await self.get_active_session(jar_id)
        if session is not None and is_past(session.end_time):
            expired_id = session.session_id
            logger.info(f"Lazily resolving expired vote {expired_id} in jar {jar_id}")
            try:
                await self.resolve_vote(jar_id)
            except NoActiveVoteError:
                logger.debug(f"Expired vote {expired_id} already resolved elsewhere")
            session = await self.get_active_session(jar_id)

        if session is None:
            return await self._inactive_state(jar_id)

        members_result = await self.db.execute(
            select(JarMember)
            .where(JarMember.jar_id == jar_id)
            .options(selectinload(JarMember.user))
            .order_by(JarMember.joined_at)
        )
        members = list(members_result.scalars().all())
        voted_user_ids = {vote.user_id for vote in session.votes}

        return {
            "active": True,
            "session": session,
            "has_voted": user_id in voted_user_ids,
            "votes_cast": len(session.votes),
            "total_members": len(members),
            "pending_voters": [
                {"id": member.user_id, "name": member.user.name if member.user else None}
                for member in members
                if member.user_id not in voted_user_ids
            ],
        }

    async def _inactive_state(self, jar_id: UUID) -> dict:
        last_result = await self.db.execute(
            select(VoteSession)
            .where(
                VoteSession.jar_id == jar_id,
                VoteSession.status == VoteSessionStatus.COMPLETED.value,
            )
            .options(selectinload(VoteSession.winner))
            .order_by(VoteSession.created_at.desc())
            .limit(1)
        )
        admin_result = await self.db.execute(
            select(User.name)
            .join(JarMember, JarMember.user_id == User.user_id)
            .where(JarMember.jar_id == jar_id, JarMember.role == MemberRole.ADMIN.value)
            .order_by(JarMember.joined_at)
            .limit(1)
        )
        return {
            "active": False,
            "last_result": last_result.scalar_one_or_none(),
            "admin_name": admin_result.scalar_one_or_none() or "Admin",
        }

    async def resolve_expired_sessions(self) -> int:
        """Resolve every ACTIVE session whose deadline has passed.

        Returns the number of sessions this call resolved.
        """
        result = await self.db.execute(
            select(VoteSession.jar_id, VoteSession.end_time).where(
                VoteSession.status == VoteSessionStatus.ACTIVE.value,
                VoteSession.end_time.is_not(None),
            )
        )
        expired_jar_ids = [jar_id for jar_id, end_time in result.all() if is_past(end_time)]

        resolved = 0
        for jar_id in expired_jar_ids:
            try:
                await self.resolve_vote(jar_id)
                resolved += 1
            except NoActiveVoteError:
                continue
        if resolved:
            logger.info(f"Expiry sweep resolved {resolved} vote session(s)")
        return resolved
