"""Shared fixtures: isolated SQLite store, pinned clock, services and an API client."""

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.database import Base, build_engine
from app.domain.catalog.repository import ServiceRepository
from app.domain.reservations.admission_service import AdmissionController
from app.domain.reservations.locks import AdmissionLockRegistry
from app.domain.reservations.schemas import PatientInfo
from app.domain.scheduling.time_calculator import OperatingHours, parse_clinic_hours

FIXED_NOW = datetime(2025, 1, 15, 9, 0)
TARGET_DATE = date(2025, 1, 20)  # Monday
SUNDAY = date(2025, 1, 19)


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so separate sessions (and threads) share one store."""
    engine = build_engine(f"sqlite:///{tmp_path / 'clinic_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def hours():
    return OperatingHours(
        windows=parse_clinic_hours("MORNING=09:00-12:00,AFTERNOON=14:00-18:00,EVENING=18:00-20:00"),
        closed_weekdays=frozenset({"SUNDAY"}),
        granularity_minutes=30,
    )


@pytest.fixture
def make_service(db):
    """Factory creating a catalog service, optionally with an active daily limit."""

    def _make(code="X", duration=30, buffer=10, daily_limit=None, is_active=True, name=None):
        service = ServiceRepository.create_service(
            db,
            code=code,
            name=name or f"Service {code}",
            duration_minutes=duration,
            buffer_minutes=buffer,
            is_active=is_active,
            display_order=0,
        )
        if daily_limit is not None:
            ServiceRepository.upsert_limit(db, service.id, daily_limit)
        return service

    return _make


@pytest.fixture
def service_x(make_service):
    """Service X: 30 min appointments, 10 min buffer, 180 min per day (max 6 bookings)."""
    return make_service("X", duration=30, buffer=10, daily_limit=180)


@pytest.fixture
def patient():
    return PatientInfo(name="Kim Minji", phone="010-1234-5678")


@pytest.fixture
def locks():
    return AdmissionLockRegistry()


@pytest.fixture
def admission(db, hours, locks):
    return AdmissionController(db, hours=hours, clock=fixed_clock, locks=locks, retry_backoff=0)


@pytest.fixture
def client(session_factory, hours):
    """API client wired to the test store, clock and opening hours."""
    from app.database import get_db
    from app.domain.scheduling.time_calculator import get_operating_hours
    from app.main import app
    from app.shared.clock import get_clock

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_operating_hours] = lambda: hours
    yield TestClient(app)
    app.dependency_overrides.clear()


STAFF_HEADERS = {"X-Caller-Role": "ADMIN", "X-Caller-Id": "staff-1"}
EDITOR_HEADERS = {"X-Caller-Role": "EDITOR", "X-Caller-Id": "editor-1"}
