"""User account model."""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
import uuid
from backend.database import Base
from backend.models.base import get_uuid_column, utc_now


class User(Base):
    """A person who can belong to jars, add ideas and vote."""
    __tablename__ = "users"

    user_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_premium = Column(Boolean, default=False, nullable=False)
    active_jar_id = get_uuid_column(ForeignKey("jars.jar_id", ondelete="SET NULL"), nullable=True)

    # Notification preferences
    notify_voting = Column(Boolean, default=True, nullable=False)
    notify_idea_added = Column(Boolean, default=True, nullable=False)
    notify_jar_spun = Column(Boolean, default=True, nullable=False)
    notify_achievements = Column(Boolean, default=True, nullable=False)
    notify_level_up = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    last_login_date = Column(DateTime(timezone=True), nullable=True)

    memberships = relationship(
        "JarMember", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<User(user_id={self.user_id}, email={self.email})>"
