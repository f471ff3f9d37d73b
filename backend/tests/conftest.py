"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so the test environment is fixed first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite://")
os.environ["REDIS_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-jwt-secret-with-enough-entropy-for-hs256"
os.environ.pop("EXAM_API_KEY", None)
os.environ.pop("RECAPTCHA_SECRET_KEY", None)
os.environ.pop("QUESTION_ENCRYPTION_KEY", None)

from collections.abc import Generator  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from exam_engine.core.codec import set_question_codec  # noqa: E402
from exam_engine.core.security import create_access_token  # noqa: E402
from exam_engine.db.base import Base, import_models  # noqa: E402
from exam_engine.db.engine import engine  # noqa: E402
from exam_engine.main import app  # noqa: E402
from exam_engine.models.user import User, UserRole  # noqa: E402
from exam_engine.services import time_authority  # noqa: E402
from tests.helpers.seed import create_test_user  # noqa: E402

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


class FrozenClock:
    """Controllable server clock for expiry tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; application code is free to commit."""
    import_models()
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_codec() -> Generator[None, None, None]:
    set_question_codec(None)
    yield
    set_question_codec(None)


@pytest.fixture
def clock(monkeypatch) -> FrozenClock:
    """Replace the server clock with a frozen, manually advanced one."""
    frozen = FrozenClock(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(time_authority, "server_now", frozen)
    return frozen


@pytest.fixture
def student(db) -> User:
    return create_test_user(db, role=UserRole.STUDENT)


@pytest.fixture
def other_student(db) -> User:
    return create_test_user(db, role=UserRole.STUDENT)


@pytest.fixture
def examiner(db) -> User:
    return create_test_user(db, role=UserRole.EXAMINER)


@pytest.fixture
def admin(db) -> User:
    return create_test_user(db, role=UserRole.ADMIN)


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers(student) -> dict[str, str]:
    return auth_headers_for(student)


@pytest.fixture
def client(db) -> Generator[TestClient, None, None]:
    """FastAPI test client sharing the test database session."""
    from exam_engine.db.session import get_db

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
