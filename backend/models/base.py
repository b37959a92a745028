"""Base utilities and enumerations for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes

from backend.utils.datetime_helpers import utc_now  # noqa: F401 - column default


class MemberRole(str, Enum):
    """Role of a user inside a jar."""
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class MemberStatus(str, Enum):
    """Membership status."""
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"


class SelectionMode(str, Enum):
    """How a jar chooses its next idea."""
    RANDOM = "RANDOM"
    VOTE = "VOTE"
    ADMIN_PICK = "ADMIN_PICK"
    ALLOCATION = "ALLOCATION"


class IdeaStatus(str, Enum):
    """Moderation status of an idea."""
    APPROVED = "APPROVED"
    PENDING = "PENDING"


class TieBreakerMode(str, Enum):
    """Policy applied when several ideas share the top vote count."""
    RANDOM_PICK = "RANDOM_PICK"
    RE_VOTE = "RE_VOTE"


class VoteSessionStatus(str, Enum):
    """Lifecycle state of a voting round."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Terminal states have no outgoing transitions.
VOTE_SESSION_TRANSITIONS: dict[VoteSessionStatus, frozenset[VoteSessionStatus]] = {
    VoteSessionStatus.ACTIVE: frozenset({VoteSessionStatus.COMPLETED, VoteSessionStatus.CANCELLED}),
    VoteSessionStatus.COMPLETED: frozenset(),
    VoteSessionStatus.CANCELLED: frozenset(),
}


def can_transition(current: VoteSessionStatus | str, target: VoteSessionStatus | str) -> bool:
    """Return True when a vote session may move from ``current`` to ``target``."""
    return VoteSessionStatus(target) in VOTE_SESSION_TRANSITIONS[VoteSessionStatus(current)]


class GUID(sqltypes.TypeDecorator):
    """UUID stored natively on PostgreSQL and as 32-char hex everywhere else."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(32))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return value.hex

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that adapts to the database dialect.

    Example:
        user_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        jar_id = get_uuid_column(ForeignKey("jars.jar_id"), nullable=True)
    """
    return Column(GUID(), *args, **kwargs)
