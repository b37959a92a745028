"""Vote-related Pydantic schemas.

These bodies use camelCase keys on the wire (``ideaId``, ``hasVoted``) and
also accept snake_case in requests.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from backend.models.vote import VoteSession
from backend.schemas.base import CamelSchema


class VoteActionRequest(CamelSchema):
    """Body of ``POST /api/jars/{id}/vote``."""
    action: Optional[str] = None
    tie_breaker_mode: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(default=None, ge=1, le=7 * 24 * 60)
    mandatory: Optional[bool] = None
    idea_id: Optional[UUID] = None


class VoteSessionResponse(CamelSchema):
    id: UUID
    jar_id: UUID
    status: str
    tie_breaker_mode: str
    start_time: datetime
    end_time: Optional[datetime] = None
    round: int
    eligible_idea_ids: list[UUID]
    winner_id: Optional[UUID] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: VoteSession, **extra) -> "VoteSessionResponse":
        return cls(
            id=session.session_id,
            jar_id=session.jar_id,
            status=session.status,
            tie_breaker_mode=session.tie_breaker_mode,
            start_time=session.start_time,
            end_time=session.end_time,
            round=session.round,
            eligible_idea_ids=session.eligible_ids,
            winner_id=session.winner_id,
            resolved_at=session.resolved_at,
            **extra,
        )


class VoteWinner(CamelSchema):
    id: UUID
    description: str
    category: str
    selected_at: Optional[datetime] = None


class LastVoteResult(VoteSessionResponse):
    winner: Optional[VoteWinner] = None

    @classmethod
    def from_result(cls, session: VoteSession) -> "LastVoteResult":
        winner = None
        if session.winner is not None:
            winner = VoteWinner(
                id=session.winner.idea_id,
                description=session.winner.description,
                category=session.winner.category,
                selected_at=session.winner.selected_at,
            )
        return cls.from_session(session, winner=winner)


class PendingVoter(CamelSchema):
    id: UUID
    name: Optional[str] = None


class VoteActionResponse(CamelSchema):
    """Result of a vote action. Only the fields relevant to the action are sent."""
    success: bool = True
    session: Optional[VoteSessionResponse] = None
    winner_id: Optional[UUID] = None
    method: Optional[str] = None
    note: Optional[str] = None
    next_round: Optional[VoteSessionResponse] = None
    message: Optional[str] = None
    winners: Optional[list[UUID]] = None


class VoteStateResponse(CamelSchema):
    """Result of polling the vote state of a jar."""
    active: bool
    session: Optional[VoteSessionResponse] = None
    has_voted: Optional[bool] = None
    votes_cast: Optional[int] = None
    total_members: Optional[int] = None
    pending_voters: Optional[list[PendingVoter]] = None
    last_result: Optional[LastVoteResult] = None
    admin_name: Optional[str] = None
