"""Tests for the cascade effect calculator."""

import pytest
from conftest import TARGET_DATE, fixed_clock

from app.domain.catalog.cascade_service import CascadeService
from app.models import Reservation
from app.shared.errors import InvalidServiceConfigError, ServiceNotFoundError


@pytest.fixture
def cascade(db):
    return CascadeService(db, clock=fixed_clock)


class TestCascade:
    def test_duration_increase_reduces_max_bookings(self, cascade, service_x):
        """30 → 45 minutes with a 180 minute limit: 6 bookings become 4."""
        effect = cascade.calculate_cascade("X", 30, 45)

        assert effect.computed is True
        assert effect.max_bookings_changed == {"before": 6, "after": 4, "direction": "decrease"}
        assert effect.daily_limit_minutes == 180
        assert len(effect.warnings) == 1

    def test_duration_decrease_is_flagged_as_increase(self, cascade, service_x):
        """Shorter appointments allow more bookings per day."""
        effect = cascade.calculate_cascade("X", 30, 20)
        assert effect.max_bookings_changed == {"before": 6, "after": 9, "direction": "increase"}

    def test_same_max_bookings_no_change(self, cascade, service_x):
        """When floor(limit / duration) is unchanged no capacity change is reported."""
        effect = cascade.calculate_cascade("X", 30, 35)  # 6 → 5
        assert effect.max_bookings_changed["after"] == 5

        effect = cascade.calculate_cascade("X", 40, 45)  # 4 → 4
        assert effect.max_bookings_changed is None
        assert effect.warnings == []

    def test_without_limit(self, cascade, make_service):
        """Unlimited services report no capacity change but still compute."""
        make_service("FREE", daily_limit=None)
        effect = cascade.calculate_cascade("FREE", 30, 60)
        assert effect.computed is True
        assert effect.max_bookings_changed is None
        assert effect.daily_limit_minutes is None

    def test_counts_future_live_reservations(self, db, cascade, admission, service_x, patient):
        """Upcoming PENDING/CONFIRMED reservations are reported with a caution."""
        admission.admit("X", TARGET_DATE, "09:00", patient)
        cancelled = admission.admit("X", TARGET_DATE, "10:00", patient)
        cancelled.status = "CANCELLED"
        db.commit()

        effect = cascade.calculate_cascade("X", 30, 45)
        assert effect.affected_reservations == 1
        assert len(effect.warnings) == 2

    def test_never_mutates_reservations(self, db, cascade, admission, service_x, patient):
        """The calculator is advisory only."""
        reservation = admission.admit("X", TARGET_DATE, "09:00", patient)
        cascade.calculate_cascade("X", 30, 45)

        db.expire_all()
        stored = db.query(Reservation).filter(Reservation.id == reservation.id).one()
        assert stored.duration_minutes == 30
        assert stored.slot_end == "09:30"

    @pytest.mark.parametrize("old,new", [(30, 5), (30, 500), (0, 30)])
    def test_out_of_bounds_duration(self, cascade, service_x, old, new):
        """Durations outside 10-480 minutes are invalid configuration."""
        with pytest.raises(InvalidServiceConfigError):
            cascade.calculate_cascade("X", old, new)

    def test_unknown_service(self, cascade):
        with pytest.raises(ServiceNotFoundError):
            cascade.calculate_cascade("NOPE", 30, 45)
