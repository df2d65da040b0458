import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
import uuid
import time

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ANSWER_ENCRYPTION_KEY", "test-answer-encryption-key-0123456789abcdef")

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from quizdesk.db.base import Base
from quizdesk.db import session as session_module

# Import models so that they are registered in Base.metadata before create_all.
from quizdesk.models.user import User, UserRole  # noqa: F401
from quizdesk.models.quiz import Quiz, Question  # noqa: F401
from quizdesk.models.attempt import QuizAttempt, QuizAnswer, QuizResult  # noqa: F401
from quizdesk.models.notification import Notification  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


class _InlineJob:
    def __init__(self, result):
        self.id = str(uuid.uuid4())
        self.result = result


class _InlineQueue:
    """Runs enqueued jobs immediately, like an RQ queue with is_async=False."""

    def __init__(self):
        self.jobs: list[tuple[object, dict]] = []

    def enqueue(self, fn, *args, **kwargs):
        for opt in ("job_timeout", "result_ttl", "failure_ttl"):
            kwargs.pop(opt, None)
        self.jobs.append((fn, dict(kwargs)))
        return _InlineJob(fn(*args, **kwargs))


# Configure test DB (SQLite in-memory) at import time so everything that opens
# sessions through quizdesk.db.session gets the patched factory.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis and RQ at import time (rate limiting, health, notifications).
_mem_redis = _MemoryRedis()
_inline_queue = _InlineQueue()

import quizdesk.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import quizdesk.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import quizdesk.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis

import quizdesk.services.notifications as notifications_module
notifications_module.get_queue = lambda name=None: _inline_queue

from quizdesk.main import create_app
from quizdesk.routers.auth import _create_access_token, hash_password

T0 = datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)

OPTIONS = [
    ("Capital of France?", ["Paris", "London", "Rome", "Berlin"], "option1"),
    ("2 + 2 = ?", ["3", "4", "5", "22"], "option2"),
    ("Largest planet?", ["Mars", "Venus", "Jupiter", "Mercury"], "option3"),
    ("H2O is?", ["Salt", "Air", "Gold", "Water"], "option4"),
]

_password_hash = hash_password("testpass123")


@pytest.fixture(autouse=True)
def _reset_stubs():
    _mem_redis._data.clear()
    _inline_queue.jobs.clear()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def inline_queue():
    return _inline_queue


@pytest.fixture()
def make_user(db):
    def _make(role: UserRole = UserRole.student, class_name: str | None = "7A") -> User:
        user = User(
            name=f"{role.value}_{uuid.uuid4().hex[:8]}",
            role=role,
            class_name=class_name,
            password_hash=_password_hash,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_quiz(db):
    def _make(
        *,
        start: datetime = T0,
        end: datetime | None = None,
        duration_minutes: int | None = 10,
        published: bool = True,
        questions=OPTIONS,
        class_name: str | None = "7A",
    ) -> Quiz:
        quiz = Quiz(
            title=f"Quiz {uuid.uuid4().hex[:6]}",
            class_name=class_name,
            start_time=start,
            end_time=end or (start + timedelta(hours=2)),
            duration_minutes=duration_minutes,
            published=published,
        )
        db.add(quiz)
        db.flush()
        for i, (text, opts, correct) in enumerate(questions):
            db.add(
                Question(
                    quiz_id=quiz.id,
                    question_text=text,
                    option1=opts[0],
                    option2=opts[1],
                    option3=opts[2],
                    option4=opts[3],
                    correct_option=correct,
                    created_at=T0 + timedelta(seconds=i),
                )
            )
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture()
def live_quiz(make_quiz):
    """A quiz whose window contains the real wall clock."""
    now = datetime.now(timezone.utc)
    return make_quiz(start=now - timedelta(hours=1), end=now + timedelta(hours=1))


@pytest.fixture()
def headers_for():
    def _headers(user: User) -> dict[str, str]:
        token = _create_access_token(user_id=str(user.id), role=user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def student(make_user):
    return make_user(UserRole.student)


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.admin, class_name=None)
