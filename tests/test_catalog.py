"""Tests for catalog administration."""

from datetime import date

import pytest
from conftest import TARGET_DATE, fixed_clock
from pydantic import ValidationError

from app.domain.catalog.schemas import ServiceCreate, ServiceUpdate
from app.domain.catalog.service import CatalogService
from app.shared.errors import (
    ImmutableFieldError,
    InvalidServiceConfigError,
    ServiceNotFoundError,
)


@pytest.fixture
def catalog(db):
    return CatalogService(db, clock=fixed_clock)


def create_payload(**overrides):
    data = {"code": "SKIN_CARE", "name": "Skin care", "durationMinutes": 50}
    data.update(overrides)
    return ServiceCreate(**data)


class TestCreate:
    def test_create_with_limit(self, catalog):
        """Should create the service with default buffer and an active limit."""
        service = catalog.create_service(create_payload(dailyLimitMinutes=240))

        assert service.code == "SKIN_CARE"
        assert service.buffer_minutes == 10
        assert service.total_minutes == 60
        assert service.daily_limit.daily_limit_minutes == 240

    @pytest.mark.parametrize("code", ["skin", "A", "SKIN-CARE", "SKIN1"])
    def test_invalid_code_rejected(self, code):
        """Codes are upper-case letters and underscores, 2-50 characters."""
        with pytest.raises(ValidationError):
            create_payload(code=code)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"durationMinutes": 9},
            {"durationMinutes": 481},
            {"bufferMinutes": -1},
            {"bufferMinutes": 61},
            {"dailyLimitMinutes": 0},
        ],
    )
    def test_bounds(self, catalog, overrides):
        """Duration, buffer and limit bounds are enforced on create."""
        with pytest.raises(InvalidServiceConfigError):
            catalog.create_service(create_payload(**overrides))

    def test_duplicate_code(self, catalog):
        """Codes are unique."""
        catalog.create_service(create_payload())
        with pytest.raises(InvalidServiceConfigError):
            catalog.create_service(create_payload())


class TestUpdate:
    def test_code_is_immutable(self, catalog, service_x):
        """Changing the code should raise ImmutableFieldError."""
        with pytest.raises(ImmutableFieldError):
            catalog.update_service("X", ServiceUpdate(code="Y"))

    def test_same_code_allowed(self, catalog, service_x):
        """Echoing the current code back is not a change."""
        service, cascade = catalog.update_service("X", ServiceUpdate(code="X", name="Renamed"))
        assert service.name == "Renamed"
        assert cascade is None

    def test_duration_change_returns_cascade(self, catalog, service_x):
        """A duration change should report its cascade effect."""
        service, cascade = catalog.update_service("X", ServiceUpdate(durationMinutes=45))

        assert service.duration_minutes == 45
        assert cascade.max_bookings_changed["direction"] == "decrease"

    def test_update_bounds(self, catalog, service_x):
        with pytest.raises(InvalidServiceConfigError):
            catalog.update_service("X", ServiceUpdate(bufferMinutes=90))

    def test_unknown(self, catalog):
        with pytest.raises(ServiceNotFoundError):
            catalog.update_service("NOPE", ServiceUpdate(name="x"))

    def test_deactivate_is_soft(self, catalog, service_x):
        """Deactivation keeps the row and hides it from active listings."""
        catalog.deactivate_service("X")

        assert catalog.get_service("X").is_active is False
        assert catalog.list_services(active_only=True) == []
        assert len(catalog.list_services()) == 1


class TestDailyLimits:
    def test_upsert_replaces_limit(self, catalog, service_x):
        limit = catalog.upsert_daily_limit("X", 240)
        assert limit.daily_limit_minutes == 240
        assert limit.is_active is True

    def test_non_positive_limit(self, catalog, service_x):
        with pytest.raises(InvalidServiceConfigError):
            catalog.upsert_daily_limit("X", 0)

    def test_toggle_limit(self, catalog, service_x, make_service):
        """Disabling a limit makes capacity unlimited; services without a limit stay as they are."""
        limit = catalog.set_daily_limit_active("X", False)
        assert limit.is_active is False
        assert catalog.daily_usage("X", TARGET_DATE, TARGET_DATE)[0] is None

        make_service("FREE")
        assert catalog.set_daily_limit_active("FREE", True) is None

    def test_daily_usage(self, catalog, admission, service_x, patient):
        """Usage reports committed minutes per day against the limit."""
        admission.admit("X", TARGET_DATE, "09:00", patient)
        admission.admit("X", TARGET_DATE, "10:00", patient)

        limit, days = catalog.daily_usage("X", TARGET_DATE, date(2025, 1, 21))

        assert limit == 180
        assert [d.date for d in days] == [TARGET_DATE, date(2025, 1, 21)]
        assert days[0].committed_minutes == 60
        assert days[0].remaining_minutes == 120
        assert days[0].utilization_percent == 33.3
        assert days[1].committed_minutes == 0

    def test_daily_usage_range(self, catalog, service_x):
        with pytest.raises(InvalidServiceConfigError):
            catalog.daily_usage("X", TARGET_DATE, date(2025, 1, 1))
