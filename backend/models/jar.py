"""Jar and membership models."""
from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import uuid
from backend.database import Base
from backend.models.base import get_uuid_column, utc_now, MemberRole, MemberStatus, SelectionMode


class Jar(Base):
    """A named collection of ideas shared by a group."""
    __tablename__ = "jars"

    jar_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    reference_code = Column(String(16), unique=True, nullable=False)
    topic = Column(String(50), default="General", nullable=False)
    selection_mode = Column(String(20), default=SelectionMode.RANDOM.value, nullable=False)
    vote_candidates_count = Column(Integer, default=0, nullable=False)  # 0 = every available idea
    default_idea_private = Column(Boolean, default=False, nullable=False)
    xp = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    members = relationship("JarMember", back_populates="jar", cascade="all, delete-orphan", passive_deletes=True)
    ideas = relationship("Idea", back_populates="jar", cascade="all, delete-orphan", passive_deletes=True)
    vote_sessions = relationship(
        "VoteSession", back_populates="jar", cascade="all, delete-orphan", passive_deletes=True
    )
    achievements = relationship(
        "UnlockedAchievement", back_populates="jar", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<Jar(jar_id={self.jar_id}, name={self.name}, mode={self.selection_mode})>"


class JarMember(Base):
    """Join row between a user and a jar."""
    __tablename__ = "jar_members"

    member_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = get_uuid_column(ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default=MemberRole.MEMBER.value, nullable=False)
    status = Column(String(20), default=MemberStatus.ACTIVE.value, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user = relationship("User", back_populates="memberships")
    jar = relationship("Jar", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "jar_id", name="uq_jar_members_user_jar"),
        Index("ix_jar_members_jar_role", "jar_id", "role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN.value

    def __repr__(self):
        return f"<JarMember(user_id={self.user_id}, jar_id={self.jar_id}, role={self.role})>"
