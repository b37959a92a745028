"""Pytest configuration and fixtures."""
import os
import random
import uuid
from functools import lru_cache

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Settings are cached on first use, so the environment is fixed before any backend import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["OPENAI_API_KEY"] = ""
os.environ["VOTE_EXPIRY_SWEEP_ENABLED"] = "false"

from backend.database import Base, enable_sqlite_foreign_keys
import backend.models  # noqa: F401 - registers every table on Base.metadata
from backend.models.base import MemberRole, MemberStatus, SelectionMode
from backend.models.idea import Idea
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.services.auth_service import AuthService
from backend.services.notification_service import NotificationService
from backend.utils.passwords import hash_password

DEFAULT_PASSWORD = "TestPassword123"


@lru_cache()
def _default_password_hash() -> str:
    return hash_password(DEFAULT_PASSWORD)


class RecordingNotifier(NotificationService):
    """Notification service that remembers every fan-out before writing it."""

    def __init__(self, db):
        super().__init__(db)
        self.calls = []

    async def notify_jar_members(self, jar_id, exclude_user_id, payload, preference=None):
        self.calls.append({
            "jar_id": jar_id,
            "exclude_user_id": exclude_user_id,
            "payload": payload,
            "preference": preference,
        })
        return await super().notify_jar_members(jar_id, exclude_user_id, payload, preference)

    @property
    def titles(self) -> list[str]:
        return [call["payload"].title for call in self.calls]


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite file database with the schema created from the models."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture
async def test_app(session_factory):
    """Create test app with database override."""
    from backend.main import app
    from backend.database import get_db

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def notifier(db_session):
    return RecordingNotifier(db_session)


@pytest.fixture
def failing_fan_out(monkeypatch):
    """Make every notification insert fail as if the database rejected it."""

    def _reject(**kwargs):
        raise OperationalError("INSERT INTO notifications", kwargs, Exception("database is locked"))

    monkeypatch.setattr("backend.services.notification_service.Notification", _reject)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def user_factory(db_session):
    """Factory for creating users with the default password."""

    async def _create_user(name: str | None = None, email: str | None = None, **fields) -> User:
        unique_id = uuid.uuid4().hex[:8]
        user = User(
            user_id=uuid.uuid4(),
            email=email or f"user{unique_id}@example.com",
            name=name or f"User {unique_id}",
            password_hash=_default_password_hash(),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _create_user


@pytest.fixture
def jar_factory(db_session):
    """Factory for a jar with ``admin`` as ADMIN and ``members`` as MEMBERs."""

    async def _create_jar(
        admin: User,
        members: tuple[User, ...] = (),
        selection_mode: str = SelectionMode.VOTE.value,
        topic: str = "General",
        vote_candidates_count: int = 0,
    ) -> Jar:
        jar = Jar(
            jar_id=uuid.uuid4(),
            name=f"Jar {uuid.uuid4().hex[:6]}",
            reference_code=uuid.uuid4().hex[:6].upper(),
            topic=topic,
            selection_mode=selection_mode,
            vote_candidates_count=vote_candidates_count,
        )
        db_session.add(jar)
        await db_session.flush()

        db_session.add(JarMember(
            user_id=admin.user_id,
            jar_id=jar.jar_id,
            role=MemberRole.ADMIN.value,
            status=MemberStatus.ACTIVE.value,
        ))
        for member in members:
            db_session.add(JarMember(
                user_id=member.user_id,
                jar_id=jar.jar_id,
                role=MemberRole.MEMBER.value,
                status=MemberStatus.ACTIVE.value,
            ))
        await db_session.commit()
        return jar

    return _create_jar


@pytest.fixture
def idea_factory(db_session):
    """Factory for APPROVED, unselected ideas."""

    async def _create_idea(jar: Jar, author: User, description: str | None = None, **fields) -> Idea:
        idea = Idea(
            idea_id=uuid.uuid4(),
            jar_id=jar.jar_id,
            created_by_id=author.user_id,
            description=description or f"Idea {uuid.uuid4().hex[:6]}",
            **fields,
        )
        db_session.add(idea)
        await db_session.commit()
        return idea

    return _create_idea


@pytest.fixture
def auth_headers(db_session):
    """Build a bearer Authorization header for a user."""

    def _headers(user: User) -> dict[str, str]:
        token, _ = AuthService(db_session).create_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
