"""Tests for the availability engine."""

from datetime import date

import pytest
from conftest import FIXED_NOW, SUNDAY, TARGET_DATE, fixed_clock

from app.domain.scheduling.availability_service import (
    AvailabilityService,
    DayStatus,
    UnavailableReason,
)
from app.domain.scheduling.time_calculator import OperatingHours
from app.models import ClinicTimeSlot, ManualTimeClosure
from app.shared.errors import ServiceInactiveError, ServiceNotFoundError


@pytest.fixture
def engine_service(db, hours):
    return AvailabilityService(db, hours=hours, clock=fixed_clock)


def book(admission, patient, start, code="X", day=TARGET_DATE, status=None, db=None):
    reservation = admission.admit(code, day, start, patient)
    if status:
        reservation.status = status
        db.commit()
    return reservation


def reasons(result):
    return {s.start: s.unavailable_reason for s in result.slots}


class TestSlotGeneration:
    def test_empty_day_all_available(self, engine_service, service_x):
        """Every candidate should be available on an open day with no bookings."""
        result = engine_service.compute_slots("X", TARGET_DATE)

        assert result.metadata.total_slots == 18  # 6 morning, 8 afternoon, 4 evening
        assert result.metadata.available_slots == 18
        assert all(s.available for s in result.slots)
        assert result.slots[0].start == "09:00"
        assert result.slots[0].end == "09:30"
        assert result.slots[-1].start == "19:30"

    def test_slots_are_chronological_and_grouped(self, engine_service, service_x):
        """Slots should be ordered by start and grouped by period as a view."""
        result = engine_service.compute_slots("X", TARGET_DATE)
        starts = [s.start for s in result.slots]
        assert starts == sorted(starts)

        grouped = result.by_period()
        assert list(grouped) == ["MORNING", "AFTERNOON", "EVENING"]
        assert [s.start for s in grouped["EVENING"]] == ["18:00", "18:30", "19:00", "19:30"]

    def test_granularity_from_operating_hours(self, db, hours, service_x):
        """The configured granularity should set the step between candidates."""
        hourly = OperatingHours(windows=hours.windows, closed_weekdays=hours.closed_weekdays, granularity_minutes=60)
        result = AvailabilityService(db, hours=hourly, clock=fixed_clock).compute_slots("X", TARGET_DATE)
        assert [s.start for s in result.by_period()["MORNING"]] == ["09:00", "10:00", "11:00"]
        assert result.metadata.granularity_minutes == 60

    def test_metadata_describes_service(self, engine_service, service_x):
        """Metadata should carry service name, duration and total minutes."""
        meta = engine_service.compute_slots("X", TARGET_DATE).metadata
        assert meta.service_name == "Service X"
        assert meta.duration_minutes == 30
        assert meta.total_minutes == 40
        assert meta.daily_limit_minutes == 180
        assert meta.remaining_minutes == 180

    def test_unknown_service(self, engine_service):
        """Should raise ServiceNotFoundError for an unknown code."""
        with pytest.raises(ServiceNotFoundError):
            engine_service.compute_slots("NOPE", TARGET_DATE)

    def test_inactive_service(self, engine_service, make_service):
        """Should raise ServiceInactiveError for a deactivated service."""
        make_service("OLD", is_active=False)
        with pytest.raises(ServiceInactiveError):
            engine_service.compute_slots("OLD", TARGET_DATE)


class TestOverlap:
    def test_confirmed_reservation_blocks_its_buffer(
        self, db, engine_service, admission, service_x, patient
    ):
        """A 09:00 booking (30 + 10 buffer) should block 09:00 and 09:30; 10:00 is next."""
        book(admission, patient, "09:00", status="CONFIRMED", db=db)

        result = engine_service.compute_slots("X", TARGET_DATE)
        verdicts = reasons(result)

        assert verdicts["09:00"] == UnavailableReason.OVERLAP
        assert verdicts["09:30"] == UnavailableReason.OVERLAP
        next_free = next(s for s in result.slots if s.available)
        assert next_free.start == "10:00"

    def test_candidate_buffer_runs_into_later_booking(
        self, db, engine_service, admission, service_x, patient
    ):
        """A candidate whose own buffer reaches an existing booking should overlap."""
        book(admission, patient, "10:00")

        verdicts = reasons(engine_service.compute_slots("X", TARGET_DATE))
        # 09:30 occupies [09:30, 10:10)
        assert verdicts["09:30"] == UnavailableReason.OVERLAP
        assert verdicts["09:00"] is None

    def test_cancelled_and_no_show_do_not_block(
        self, db, engine_service, admission, service_x, patient
    ):
        """Only PENDING and CONFIRMED reservations should occupy the timeline."""
        book(admission, patient, "09:00", status="CANCELLED", db=db)
        book(admission, patient, "10:00", status="NO_SHOW", db=db)
        book(admission, patient, "11:00", status="COMPLETED", db=db)

        verdicts = reasons(engine_service.compute_slots("X", TARGET_DATE))
        assert verdicts["09:00"] is None
        assert verdicts["10:00"] is None
        # Terminal statuses release the timeline too
        assert verdicts["11:00"] is None

    def test_other_services_do_not_collide(
        self, engine_service, admission, make_service, service_x, patient
    ):
        """Overlap is evaluated per service."""
        make_service("Y", duration=30, buffer=0)
        book(admission, patient, "09:00", code="Y")

        assert reasons(engine_service.compute_slots("X", TARGET_DATE))["09:00"] is None


class TestCapacity:
    def test_full_day_reports_capacity_exceeded(self, engine_service, admission, service_x, patient):
        """After 180 booked minutes every free slot should report CAPACITY_EXCEEDED."""
        for start in ["09:00", "10:00", "11:00", "14:00", "15:00", "16:00"]:
            book(admission, patient, start)

        result = engine_service.compute_slots("X", TARGET_DATE)
        verdicts = reasons(result)

        assert verdicts["17:00"] == UnavailableReason.CAPACITY_EXCEEDED
        assert verdicts["18:00"] == UnavailableReason.CAPACITY_EXCEEDED
        # Overlap is the more specific reason and wins
        assert verdicts["09:00"] == UnavailableReason.OVERLAP
        assert result.metadata.committed_minutes == 180
        assert result.metadata.remaining_minutes == 0
        assert result.metadata.available_slots == 0

    def test_buffer_not_billed_against_capacity(self, engine_service, admission, service_x, patient):
        """Committed minutes should count duration only."""
        book(admission, patient, "09:00")
        meta = engine_service.compute_slots("X", TARGET_DATE).metadata
        assert meta.committed_minutes == 30
        assert meta.remaining_minutes == 150

    def test_unlimited_service(self, engine_service, make_service):
        """Without an active limit capacity is unlimited."""
        make_service("FREE", duration=30, buffer=0)
        meta = engine_service.compute_slots("FREE", TARGET_DATE).metadata
        assert meta.daily_limit_minutes is None
        assert meta.remaining_minutes is None


class TestPastAndClosed:
    def test_past_date_reports_past(self, engine_service, service_x):
        """Past dates are accepted and every slot is PAST."""
        result = engine_service.compute_slots("X", date(2025, 1, 14))
        assert result.metadata.total_slots == 18
        assert all(s.unavailable_reason == UnavailableReason.PAST for s in result.slots)

    def test_today_before_now_is_past(self, engine_service, service_x):
        """On the current date, starts not after now should be PAST."""
        verdicts = reasons(engine_service.compute_slots("X", FIXED_NOW.date()))
        assert verdicts["09:00"] == UnavailableReason.PAST
        assert verdicts["09:30"] is None

    def test_closed_weekday(self, engine_service, service_x):
        """A configured closed weekday should report CLOSED_DAY."""
        result = engine_service.compute_slots("X", SUNDAY)
        assert all(s.unavailable_reason == UnavailableReason.CLOSED_DAY for s in result.slots)

    def test_past_wins_over_closed(self, engine_service, service_x):
        """PAST takes precedence over CLOSED_DAY."""
        result = engine_service.compute_slots("X", date(2025, 1, 12))  # a past Sunday
        assert all(s.unavailable_reason == UnavailableReason.PAST for s in result.slots)

    def test_weekday_override_opens_closed_day(self, db, engine_service, service_x):
        """Stored opening hours for a weekday replace the configured default."""
        db.add(ClinicTimeSlot(day_of_week="SUNDAY", period="MORNING", start_time="10:00", end_time="12:00"))
        db.commit()

        result = engine_service.compute_slots("X", SUNDAY)
        assert [s.start for s in result.slots] == ["10:00", "10:30", "11:00", "11:30"]
        assert all(s.available for s in result.slots)

    def test_service_specific_override_wins(self, db, engine_service, service_x):
        """A service-specific row should win over a global row for the same weekday."""
        db.add(ClinicTimeSlot(day_of_week="MONDAY", period="MORNING", start_time="09:00", end_time="12:00"))
        db.add(
            ClinicTimeSlot(
                day_of_week="MONDAY",
                period="AFTERNOON",
                start_time="15:00",
                end_time="16:00",
                service_id=service_x.id,
            )
        )
        db.commit()

        result = engine_service.compute_slots("X", TARGET_DATE)
        assert [s.start for s in result.slots] == ["15:00", "15:30"]

    def test_period_closure(self, db, engine_service, service_x):
        """A period closure should close that period only."""
        db.add(ManualTimeClosure(closure_date=TARGET_DATE, period="AFTERNOON", is_active=True))
        db.commit()

        grouped = engine_service.compute_slots("X", TARGET_DATE).by_period()
        assert all(s.unavailable_reason == UnavailableReason.CLOSED_DAY for s in grouped["AFTERNOON"])
        assert all(s.available for s in grouped["MORNING"])

    def test_slot_closure_for_other_service_ignored(self, db, engine_service, make_service, service_x):
        """A closure scoped to another service should not affect this one."""
        other = make_service("Y")
        db.add(ManualTimeClosure(closure_date=TARGET_DATE, slot_start="10:00", service_id=other.id, is_active=True))
        db.add(ManualTimeClosure(closure_date=TARGET_DATE, slot_start="11:00", is_active=True))
        db.commit()

        verdicts = reasons(engine_service.compute_slots("X", TARGET_DATE))
        assert verdicts["10:00"] is None
        assert verdicts["11:00"] == UnavailableReason.CLOSED_DAY

    def test_inactive_closure_ignored(self, db, engine_service, service_x):
        """Deactivated closures should not block anything."""
        db.add(ManualTimeClosure(closure_date=TARGET_DATE, is_active=False))
        db.commit()

        assert engine_service.compute_slots("X", TARGET_DATE).metadata.available_slots == 18

    def test_slot_closure_blocks_appointments_running_into_it(self, db, engine_service, make_service):
        """A longer appointment that would run into a closed slot should be CLOSED_DAY too."""
        make_service("LONG", duration=60, buffer=10)
        db.add(ManualTimeClosure(closure_date=TARGET_DATE, slot_start="10:00", is_active=True))
        db.commit()

        verdicts = reasons(engine_service.compute_slots("LONG", TARGET_DATE))
        assert verdicts["09:30"] == UnavailableReason.CLOSED_DAY
        assert verdicts["10:00"] == UnavailableReason.CLOSED_DAY
        # Ends exactly when the closed slot starts; only its buffer reaches in
        assert verdicts["09:00"] is None
        assert verdicts["10:30"] is None


class TestMonthView:
    def test_month_status_per_day(self, engine_service, admission, service_x, patient):
        """Past days and Sundays are closed, a day at its limit is full, the rest are open."""
        for start in ["09:00", "10:00", "11:00", "14:00", "15:00", "16:00"]:
            book(admission, patient, start)

        month = engine_service.month_status("X", 2025, 1)
        by_date = {d.date: d for d in month.days}

        assert len(month.days) == 31
        assert by_date[date(2025, 1, 14)].status == DayStatus.CLOSED
        assert by_date[SUNDAY].status == DayStatus.CLOSED
        assert by_date[SUNDAY].total_slots == 0

        full = by_date[TARGET_DATE]
        assert full.status == DayStatus.FULL
        assert full.booked_slots == 18
        assert full.available_starts == []

        # Today: only 09:00 has already passed
        today = by_date[FIXED_NOW.date()]
        assert today.status == DayStatus.AVAILABLE
        assert today.available_slots == 17
        assert today.available_starts[0] == "09:30"

        assert month.count(DayStatus.CLOSED) == 16
        assert month.count(DayStatus.FULL) == 1
        assert month.count(DayStatus.AVAILABLE) == 14

    def test_closed_day_closure_shows_closed(self, db, engine_service, service_x):
        """A whole-day closure turns an open day into a closed one."""
        db.add(ManualTimeClosure(closure_date=date(2025, 2, 3), is_active=True))
        db.commit()

        month = engine_service.month_status("X", 2025, 2)
        by_date = {d.date: d for d in month.days}

        assert len(month.days) == 28
        assert by_date[date(2025, 2, 3)].status == DayStatus.CLOSED
        assert by_date[date(2025, 2, 3)].booked_slots == 0
        assert by_date[date(2025, 2, 4)].status == DayStatus.AVAILABLE

    def test_unknown_service(self, engine_service):
        with pytest.raises(ServiceNotFoundError):
            engine_service.month_status("NOPE", 2025, 1)
