"""Unlocked achievement model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid
from backend.database import Base
from backend.models.base import get_uuid_column, utc_now


class UnlockedAchievement(Base):
    """An achievement a jar has earned. Each achievement unlocks once per jar."""
    __tablename__ = "unlocked_achievements"

    unlock_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_id = Column(String(50), nullable=False)
    unlocked_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    jar = relationship("Jar", back_populates="achievements")

    __table_args__ = (
        UniqueConstraint("jar_id", "achievement_id", name="uq_unlocked_achievements_jar_achievement"),
    )
