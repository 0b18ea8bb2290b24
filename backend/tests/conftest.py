"""Shared pytest fixtures for backend tests."""

import uuid
from datetime import date, timedelta
from unittest.mock import patch, MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.db.models import Assignment, Lesson, ProgressLog, RoleEnum, Topic, User
from app.db.session import Base, get_db
from app.main import app
from app.services.events import ProgressEventBus, get_event_bus
from app.services.progress_cache import (
    InMemoryTTLCache,
    ProgressCacheService,
    get_progress_cache,
)


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Factory:
    """Insert rows for a test and mint bearer tokens for their users."""

    def __init__(self, db: Session):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def teacher(self, name: str | None = None) -> User:
        username = name or f"teacher_{uuid.uuid4().hex[:8]}"
        return self._save(User(username=username, role=RoleEnum.TEACHER))

    def student(self, teacher: User | None, name: str | None = None) -> User:
        username = name or f"student_{uuid.uuid4().hex[:8]}"
        return self._save(
            User(
                username=username,
                role=RoleEnum.STUDENT,
                teacher_id=teacher.id if teacher else None,
            )
        )

    def admin(self) -> User:
        return self._save(User(username=f"admin_{uuid.uuid4().hex[:8]}", role=RoleEnum.ADMIN))

    def parent(self, teacher: User) -> User:
        return self._save(
            User(
                username=f"parent_{uuid.uuid4().hex[:8]}",
                role=RoleEnum.PARENT,
                teacher_id=teacher.id,
            )
        )

    def lesson(self, name: str = "Mathematics", teacher: User | None = None, topics=()) -> Lesson:
        lesson = Lesson(name=name, teacher_id=teacher.id if teacher else None)
        lesson.topics = [Topic(name=t) for t in topics]
        return self._save(lesson)

    def topic(self, lesson: Lesson, name: str) -> Topic:
        return self._save(Topic(name=name, lesson_id=lesson.id))

    def assignment(
        self,
        student: User,
        topic: Topic,
        question_count: int = 100,
        start: date | None = None,
        end: date | None = None,
    ) -> Assignment:
        today = date.today()
        return self._save(
            Assignment(
                student_id=student.id,
                topic_id=topic.id,
                question_count=question_count,
                daily_target=10,
                start_date=start or today - timedelta(days=7),
                end_date=end or today + timedelta(days=7),
            )
        )

    def log(
        self,
        assignment: Assignment,
        right: int = 0,
        wrong: int = 0,
        empty: int = 0,
        bonus: int = 0,
        log_date: date | None = None,
    ) -> ProgressLog:
        return self._save(
            ProgressLog(
                student_id=assignment.student_id,
                assignment_id=assignment.id,
                log_date=log_date or date.today(),
                right_count=right,
                wrong_count=wrong,
                empty_count=empty,
                bonus_count=bonus,
            )
        )

    @staticmethod
    def auth(user: User) -> dict:
        token = jwt.encode({"sub": str(user.id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def mock_celery_tasks():
    """Mock Celery tasks for all tests to prevent Redis connection."""
    mock_task = MagicMock(return_value=MagicMock(id="fake-task-id"))
    mock_task.delay = MagicMock(return_value=MagicMock(id="fake-task-id"))

    # Patch at the lookup point used by the alert event subscriber
    with patch("app.tasks.evaluate_accuracy_alert", mock_task):
        yield mock_task


@pytest.fixture(scope="function")
def db():
    """Fresh schema and DB session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make(db: Session) -> Factory:
    return Factory(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ProgressCacheService:
    return ProgressCacheService(InMemoryTTLCache(settings.PROGRESS_CACHE_TTL_SECONDS, clock))


@pytest.fixture
def bus() -> ProgressEventBus:
    return ProgressEventBus()


@pytest.fixture(scope="function")
def client(db: Session, cache: ProgressCacheService, bus: ProgressEventBus):
    """FastAPI test client with overridden DB, cache and event bus dependencies."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_progress_cache] = lambda: cache
    app.dependency_overrides[get_event_bus] = lambda: bus

    # Remove TrustedHostMiddleware for tests to allow 'testserver' host
    app.user_middleware = [m for m in app.user_middleware if "TrustedHost" not in str(m)]

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
