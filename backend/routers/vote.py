"""Voting endpoints: one action endpoint and one polling endpoint per jar."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.vote import (
    LastVoteResult,
    PendingVoter,
    VoteActionRequest,
    VoteActionResponse,
    VoteSessionResponse,
    VoteStateResponse,
)
from backend.services import (
    NoVotesOutcome,
    RunoffOutcome,
    VoteService,
    WinnerOutcome,
)
from backend.utils.exceptions import BadRequestError

logger = logging.getLogger(__name__)

router = APIRouter()

VOTE_ACTIONS = ("START", "CAST", "CANCEL", "EXTEND", "RESOLVE")


def _outcome_response(outcome) -> VoteActionResponse:
    """Map a resolution outcome onto the action response body."""
    if isinstance(outcome, WinnerOutcome):
        return VoteActionResponse(success=True, winner_id=outcome.winner_id, method=outcome.method)
    if isinstance(outcome, RunoffOutcome):
        return VoteActionResponse(
            success=True, next_round=VoteSessionResponse.from_session(outcome.next_session)
        )
    if isinstance(outcome, NoVotesOutcome):
        return VoteActionResponse(success=True, message="No votes cast", winners=[])
    raise TypeError(f"Unknown vote outcome: {outcome!r}")


@router.post(
    "/{jar_id}/vote",
    response_model=VoteActionResponse,
    response_model_exclude_unset=True,
)
async def vote_action(
    jar_id: UUID,
    request: VoteActionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> VoteActionResponse:
    """Run a vote action: START, CAST, CANCEL, EXTEND or RESOLVE."""
    vote_service = VoteService(db)
    await vote_service.require_member(jar_id, user.user_id)

    action = (request.action or "").upper()
    if action not in VOTE_ACTIONS:
        raise BadRequestError("Invalid action")

    if action == "START":
        result = await vote_service.start_vote(
            jar_id,
            user,
            tie_breaker_mode=request.tie_breaker_mode,
            time_limit_minutes=request.time_limit_minutes,
            mandatory=request.mandatory,
        )
        session = VoteSessionResponse.from_session(result.session)
        if isinstance(result.outcome, WinnerOutcome):
            return VoteActionResponse(
                success=True,
                session=session,
                winner_id=result.outcome.winner_id,
                method=result.outcome.method,
                note=result.note,
            )
        return VoteActionResponse(success=True, session=session)

    if action == "CAST":
        if request.idea_id is None:
            raise BadRequestError("ideaId is required")
        outcome = await vote_service.cast_vote(jar_id, user, request.idea_id)
        if outcome is None:
            return VoteActionResponse(success=True)
        return _outcome_response(outcome)

    if action == "CANCEL":
        await vote_service.cancel_vote(jar_id, user)
        return VoteActionResponse(success=True)

    if action == "EXTEND":
        await vote_service.extend_vote(jar_id, user)
        return VoteActionResponse(success=True)

    return _outcome_response(await vote_service.resolve_vote(jar_id))


@router.get(
    "/{jar_id}/vote",
    response_model=VoteStateResponse,
    response_model_exclude_unset=True,
)
async def get_vote_state(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> VoteStateResponse:
    """Poll the vote state. An expired session is resolved before answering."""
    state = await VoteService(db).get_vote_state(jar_id, user)

    if not state["active"]:
        last_result: Optional[LastVoteResult] = None
        if state["last_result"] is not None:
            last_result = LastVoteResult.from_result(state["last_result"])
        return VoteStateResponse(
            active=False,
            last_result=last_result,
            admin_name=state["admin_name"],
        )

    return VoteStateResponse(
        active=True,
        session=VoteSessionResponse.from_session(state["session"]),
        has_voted=state["has_voted"],
        votes_cast=state["votes_cast"],
        total_members=state["total_members"],
        pending_voters=[PendingVoter(**voter) for voter in state["pending_voters"]],
    )
