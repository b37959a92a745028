"""Idea model."""
from sqlalchemy import Column, String, Float, DateTime, Boolean, ForeignKey, Index, Text
from sqlalchemy.orm import relationship
import uuid
from backend.database import Base
from backend.models.base import get_uuid_column, utc_now, IdeaStatus


class Idea(Base):
    """A candidate activity stored in a jar.

    ``selected_at`` marks the idea as chosen (by a spin or a vote win) and
    removes it from the pool of candidates.
    """
    __tablename__ = "ideas"

    idea_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = get_uuid_column(ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    description = Column(String(500), nullable=False)
    details = Column(Text, nullable=True)
    category = Column(String(50), default="ACTIVITY", nullable=False)
    cost = Column(String(10), default="FREE", nullable=False)  # FREE, $, $$, $$$
    duration = Column(Float, default=1.0, nullable=False)  # hours
    activity_level = Column(String(10), default="LOW", nullable=False)  # LOW, MEDIUM, HIGH
    time_of_day = Column(String(10), default="ANY", nullable=False)  # ANY, DAY, EVENING
    indoor = Column(Boolean, default=False, nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    is_surprise = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=IdeaStatus.APPROVED.value, nullable=False)
    # Set when an ALLOCATION jar hands the idea to a member; still counts as unselected
    assigned_to_id = get_uuid_column(ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    selected_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    jar = relationship("Jar", back_populates="ideas")
    created_by = relationship("User", foreign_keys=[created_by_id])

    __table_args__ = (
        Index("ix_ideas_jar_status_selected", "jar_id", "status", "selected_at"),
    )

    def __repr__(self):
        return f"<Idea(idea_id={self.idea_id}, description={self.description[:30]!r})>"
