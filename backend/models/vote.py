"""Vote session and ballot models."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, UniqueConstraint, JSON, text
from sqlalchemy.orm import relationship
import uuid
from uuid import UUID
from backend.database import Base
from backend.models.base import (
    get_uuid_column,
    utc_now,
    can_transition,
    TieBreakerMode,
    VoteSessionStatus,
)
from backend.utils.exceptions import InvalidTransitionError

ACTIVE_SESSION_PREDICATE = text("status = 'ACTIVE'")


class VoteSession(Base):
    """One round of voting scoped to a jar.

    At most one ACTIVE session may exist per jar; the partial unique index
    below enforces it at the database level.
    """
    __tablename__ = "vote_sessions"

    session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), default=VoteSessionStatus.ACTIVE.value, nullable=False)
    tie_breaker_mode = Column(String(20), default=TieBreakerMode.RANDOM_PICK.value, nullable=False)
    start_time = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    round = Column(Integer, default=1, nullable=False)
    eligible_idea_ids = Column(JSON, default=list, nullable=False)  # [] = every idea is eligible
    winner_id = get_uuid_column(ForeignKey("ideas.idea_id", ondelete="SET NULL"), nullable=True)
    created_by_id = get_uuid_column(ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)

    jar = relationship("Jar", back_populates="vote_sessions")
    winner = relationship("Idea", foreign_keys=[winner_id])
    votes = relationship(
        "Vote",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Vote.created_at",
    )

    __table_args__ = (
        Index(
            "uq_vote_sessions_one_active_per_jar",
            "jar_id",
            unique=True,
            sqlite_where=ACTIVE_SESSION_PREDICATE,
            postgresql_where=ACTIVE_SESSION_PREDICATE,
        ),
        Index("ix_vote_sessions_jar_status", "jar_id", "status"),
    )

    @property
    def eligible_ids(self) -> list[UUID]:
        return [UUID(str(value)) for value in (self.eligible_idea_ids or [])]

    def transition(self, target: VoteSessionStatus) -> None:
        """Move to ``target`` or raise when the lifecycle forbids it."""
        if not can_transition(self.status, target):
            raise InvalidTransitionError(
                f"Vote session cannot move from {self.status} to {VoteSessionStatus(target).value}"
            )
        self.status = VoteSessionStatus(target).value

    def __repr__(self):
        return f"<VoteSession(session_id={self.session_id}, status={self.status}, round={self.round})>"


class Vote(Base):
    """One member's ballot in a vote session."""
    __tablename__ = "votes"

    vote_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    session_id = get_uuid_column(
        ForeignKey("vote_sessions.session_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = get_uuid_column(ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    idea_id = get_uuid_column(ForeignKey("ideas.idea_id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    session = relationship("VoteSession", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_votes_session_user"),
    )

    def __repr__(self):
        return f"<Vote(vote_id={self.vote_id}, session={self.session_id}, idea={self.idea_id})>"
