"""Shared test fixtures.

Tests run against a throwaway SQLite file (aiosqlite) with Redis disabled, so
events go through an in-memory notifier instead of pub/sub.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from quizify.config import get_settings


def _ensure_test_keys() -> tuple[str, str]:
    """Generate an RSA key pair for JWT signing and point settings at it."""
    if os.environ.get("QUIZIFY_JWT_PRIVATE_KEY_PATH") and os.path.exists(os.environ["QUIZIFY_JWT_PRIVATE_KEY_PATH"]):
        return os.environ["QUIZIFY_JWT_PRIVATE_KEY_PATH"], os.environ["QUIZIFY_JWT_PUBLIC_KEY_PATH"]

    tmpdir = tempfile.mkdtemp(prefix="quizify_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with open(private_path, "wb") as f:
        f.write(
            key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
    with open(public_path, "wb") as f:
        f.write(
            key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

    os.environ["QUIZIFY_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["QUIZIFY_JWT_PUBLIC_KEY_PATH"] = public_path
    return private_path, public_path


# Configure before anything imports quizify.main (which builds the app at import time)
os.environ["QUIZIFY_REDIS_ENABLED"] = "false"
os.environ["QUIZIFY_LOG_FORMAT"] = "console"
os.environ["QUIZIFY_LOG_LEVEL"] = "WARNING"
_ensure_test_keys()
get_settings.cache_clear()

from quizify.auth.jwt import create_access_token, reset_keys  # noqa: E402
from quizify.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from quizify.db.base import Base  # noqa: E402
from quizify.db.models import QuizAttempt, User, UserLevel  # noqa: E402
from quizify.progression.seed import seed_achievements  # noqa: E402
from quizify.realtime.events import EventKind, ServerEvent  # noqa: E402
from quizify.realtime.notifier import set_notifier  # noqa: E402

reset_keys()


class RecordingNotifier:
    """Notifier that keeps every emitted event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[int, ServerEvent]] = []

    async def emit_to_user(self, user_id: int, event: ServerEvent) -> None:
        self.events.append((user_id, event))

    def of_kind(self, kind: EventKind, user_id: int | None = None) -> list[ServerEvent]:
        return [e for uid, e in self.events if e.kind is kind and (user_id is None or uid == user_id)]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'quizify_test.db'}"


@pytest_asyncio.fixture
async def database(db_url: str) -> AsyncGenerator[None, None]:
    """Fresh schema and seeded achievements for each test."""
    await init_db(db_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_session_factory()() as session:
        await seed_achievements(session)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    recorder = RecordingNotifier()
    set_notifier(recorder)
    yield recorder
    set_notifier(None)


async def _create_user(db: AsyncSession, username: str) -> User:
    user = User(username=username, email=f"{username}@example.com")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "alice")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "bob")


@pytest.fixture
def make_attempts(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Insert completed attempts directly, optionally with a matching level record."""

    async def _make(user_id: int, count: int, *, quiz_id: str = "quiz-1", with_level: bool = True) -> None:
        now = datetime.now(timezone.utc)
        for _ in range(count):
            db_session.add(
                QuizAttempt(
                    user_id=user_id,
                    quiz_id=quiz_id,
                    answers=[],
                    score=5,
                    total_possible_score=10,
                    time_spent=30,
                    completed=True,
                    started_at=now,
                    completed_at=now,
                )
            )
        if with_level:
            from quizify.progression.levels import calculate_level

            existing = await db_session.get(UserLevel, user_id)
            if existing is None:
                db_session.add(UserLevel(user_id=user_id, level=calculate_level(count), total_quizzes_answered=count))
            else:
                existing.total_quizzes_answered += count
                existing.level = calculate_level(existing.total_quizzes_answered)
        await db_session.commit()

    return _make


@pytest_asyncio.fixture
async def client(database: None, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh app; DB and notifier are set up by fixtures."""
    from quizify.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def token_for() -> Callable[[User], str]:
    def _token(u: User) -> str:
        return create_access_token(u.id, u.username)

    return _token


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User, token_for) -> AsyncClient:
    """Client authenticated as ``user``."""
    client.headers["Authorization"] = f"Bearer {token_for(user)}"
    return client


def attempt_body(**overrides) -> dict:
    body = {
        "quiz": "quiz-1",
        "answers": [
            {"questionId": "q1", "selectedAnswer": "a", "isCorrect": True, "timeSpent": 10},
            {"questionId": "q2", "selectedAnswer": "c", "isCorrect": False, "timeSpent": 12},
        ],
        "score": 5,
        "totalPossibleScore": 10,
        "timeSpent": 22,
    }
    body.update(overrides)
    return body


@pytest.fixture
def attempt_payload() -> Callable[..., dict]:
    return attempt_body


@pytest_asyncio.fixture
async def daily_tasks(db_session: AsyncSession) -> None:
    """Seed the daily task definitions (not part of ``database`` so attempt tests see no task notifications)."""
    from quizify.daily_tasks.seed import seed_daily_tasks

    await seed_daily_tasks(db_session)
