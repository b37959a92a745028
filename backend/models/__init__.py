"""Database models."""
from backend.models.user import User
from backend.models.jar import Jar, JarMember
from backend.models.idea import Idea
from backend.models.vote import VoteSession, Vote
from backend.models.notification import Notification
from backend.models.achievement import UnlockedAchievement

__all__ = [
    "User",
    "Jar",
    "JarMember",
    "Idea",
    "VoteSession",
    "Vote",
    "Notification",
    "UnlockedAchievement",
]
