import os
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from clinic_api.core.dependencies import get_clock, get_db, get_notifier  # noqa: E402
from clinic_api.database import apply_migrations, build_engine  # noqa: E402
from clinic_api.main import app  # noqa: E402

KARACHI = ZoneInfo('Asia/Karachi')


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.error: Exception | None = None
        self.enabled = True

    def send_credentials(self, email: str, doctor_id: str, password: str) -> None:
        if not self.enabled:
            return
        if self.error is not None:
            raise self.error
        self.sent.append((email, doctor_id, password))


class SimulatedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def test_engine():
    engine = build_engine('sqlite://', poolclass=StaticPool)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def migrated_engine(test_engine):
    apply_migrations(test_engine)
    return test_engine


@pytest.fixture
def session_factory(migrated_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=migrated_engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> SimulatedClock:
    return SimulatedClock(datetime(2026, 1, 5, 10, 0, tzinfo=KARACHI))


@pytest.fixture
def client(session_factory, notifier, clock, monkeypatch: pytest.MonkeyPatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr('clinic_api.routes.account_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic_api.routes.patient_routes.ensure_database_ready', lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: clock

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
