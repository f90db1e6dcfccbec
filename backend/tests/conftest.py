"""
Test configuration and shared fixtures for the booking engine test suite.

Uses a temporary SQLite database whose schema is built by the Alembic
migrations once per session. Each test gets empty tables: rows are deleted
after every test, because the services commit their own transactions.
"""

import os
import tempfile
from pathlib import Path

# Configure the environment before any application module reads it
_TEST_DB_DIR = tempfile.mkdtemp(prefix="booking_engine_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_DIR}/test.db"
os.environ["ENCRYPTION_KEY"] = "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA="
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "test-payment-secret"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"

from datetime import date, datetime, time, timedelta, timezone  # noqa: E402
from typing import Callable, Generator, Optional  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from core.config import DATABASE_URL  # noqa: E402
from core.constants import CONSULTATION_TYPE_VIDEO  # noqa: E402
from core.database import Base, SessionLocal, engine, get_db  # noqa: E402
from models import Doctor, Patient, WeeklyAvailabilityRule  # noqa: E402
from services.jwt_service import JWTService  # noqa: E402
from services.notification_service import NotificationService  # noqa: E402
from utils.datetime_utils import utc_now  # noqa: E402

BACKEND_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """
    Build the test database schema using Alembic migrations.

    Runs once per session, so the migrations themselves are exercised.
    """
    alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)

    Base.metadata.drop_all(bind=engine)
    command.upgrade(alembic_cfg, "head")

    yield

    engine.dispose()


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Provide a database session; all rows are deleted afterwards."""
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def reset_notification_handlers():
    """Keep handlers registered by one test from leaking into the next."""
    NotificationService.clear_handlers()
    yield
    NotificationService.clear_handlers()


@pytest.fixture
def client(db_session):
    """Create test client with database override."""
    from main import app

    def override_get_db():
        return db_session

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)

    yield client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Return a helper creating bearer tokens as the identity provider would."""
    def _make_token(user_id: int, role: str, email_verified: bool = True) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "role": role,
            "email": f"{role}{user_id}@example.com",
            "email_verified": email_verified,
            "iat": now,
            "exp": now + timedelta(hours=1),
        }
        return jwt.encode(claims, JWTService._get_secret_key(), algorithm=JWTService.ALGORITHM)
    return _make_token


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict]:
    def _auth_headers(user_id: int, role: str, email_verified: bool = True) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role, email_verified)}"}
    return _auth_headers


def next_weekday(start: date, weekday: int) -> date:
    """First date on or after ``start`` falling on ``weekday`` (0=Monday)."""
    return start + timedelta(days=(weekday - start.weekday()) % 7)


@pytest.fixture
def future_monday() -> date:
    """A Monday at least a week away, so no slot is filtered as past."""
    return next_weekday(utc_now().date() + timedelta(days=7), 0)


@pytest.fixture
def doctor(db_session) -> Doctor:
    """An active, verified doctor in UTC with 30-minute slots."""
    doctor = Doctor(
        display_name="Dr. Test",
        email="dr.test@example.com",
        timezone="UTC",
        slot_duration_minutes=30,
        buffer_minutes=0,
        minimum_notice_minutes=0,
        requires_approval=False,
        is_active=True,
        is_verified=True,
    )
    db_session.add(doctor)
    db_session.commit()
    return doctor


@pytest.fixture
def patient(db_session) -> Patient:
    patient = Patient(full_name="Test Patient", email="patient@example.com")
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def add_rule(db_session) -> Callable[..., WeeklyAvailabilityRule]:
    """Return a helper adding a weekly rule for a doctor."""
    def _add_rule(
        doctor: Doctor,
        day_of_week: int,
        start: time,
        end: time,
        consultation_type: str = CONSULTATION_TYPE_VIDEO,
        effective_from: Optional[date] = None,
        effective_until: Optional[date] = None,
    ) -> WeeklyAvailabilityRule:
        rule = WeeklyAvailabilityRule(
            doctor_id=doctor.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            consultation_type=consultation_type,
            is_active=True,
            effective_from=effective_from,
            effective_until=effective_until,
        )
        db_session.add(rule)
        db_session.commit()
        return rule
    return _add_rule
