"""
Availability Engine

Computes candidate slots for a service on a date and an availability verdict
for each one. Every call reads committed reservations from the store; capacity
is counted from rows, never kept in a cached counter, so a status change is
visible to the next call.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ManualTimeClosure, Service
from ...shared.clock import Clock, system_clock
from ...shared.errors import ServiceInactiveError, ServiceNotFoundError
from ..catalog.repository import ServiceRepository
from ..reservations.repository import ReservationRepository
from .repository import ScheduleRepository
from .time_calculator import (
    OperatingHours,
    Period,
    Window,
    intervals_overlap,
    to_hhmm,
    to_minutes,
    weekday_name,
)

logger = logging.getLogger(__name__)


class UnavailableReason(str, Enum):
    OVERLAP = "OVERLAP"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    PAST = "PAST"
    CLOSED_DAY = "CLOSED_DAY"


@dataclass
class Slot:
    date: date
    service_code: str
    period: Period
    start: str
    end: str
    available: bool
    unavailable_reason: Optional[UnavailableReason] = None


@dataclass
class SlotsMetadata:
    date: date
    service_code: str
    service_name: str
    duration_minutes: int
    total_minutes: int
    granularity_minutes: int
    daily_limit_minutes: Optional[int]
    committed_minutes: int
    remaining_minutes: Optional[int]
    total_slots: int
    available_slots: int
    booked_slots: int


@dataclass
class SlotsResult:
    slots: list[Slot]
    metadata: SlotsMetadata

    def by_period(self) -> dict[str, list[Slot]]:
        """Group slots by period, keeping chronological order inside each group"""
        grouped: dict[str, list[Slot]] = {}
        for slot in self.slots:
            grouped.setdefault(slot.period.value, []).append(slot)
        return grouped

    def find(self, start: str) -> Optional[Slot]:
        return next((s for s in self.slots if s.start == start), None)


class DayStatus(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    CLOSED = "closed"


@dataclass
class DayAvailability:
    date: date
    status: DayStatus
    total_slots: int
    available_slots: int
    booked_slots: int
    available_starts: list[str] = field(default_factory=list)


@dataclass
class MonthAvailability:
    service_code: str
    year: int
    month: int
    days: list[DayAvailability]

    def count(self, status: DayStatus) -> int:
        return sum(1 for d in self.days if d.status == status)


@dataclass
class DaySnapshot:
    """Committed state of one {service, date} plus that day's opening rules"""

    target_date: date
    windows: list[Window]
    closed_day: bool
    closed_periods: set = field(default_factory=set)
    closed_slots: list[tuple[int, int]] = field(default_factory=list)
    occupied: list[tuple[int, int]] = field(default_factory=list)
    committed_minutes: int = 0
    daily_limit_minutes: Optional[int] = None


def occupied_interval(slot_start: str, duration_minutes: int, buffer_minutes: int) -> tuple[int, int]:
    """Timeline footprint of a booking: [start, start + duration + buffer)"""
    start = to_minutes(slot_start)
    return start, start + duration_minutes + buffer_minutes


def closure_interval(slot_start: str, granularity_minutes: int) -> tuple[int, int]:
    """A slot closure blocks one grid step: [slot_start, slot_start + granularity)"""
    start = to_minutes(slot_start)
    return start, start + granularity_minutes


class AvailabilityService:
    """Read-only slot computation; safe to call concurrently and repeatedly"""

    def __init__(
        self,
        db: Session,
        hours: Optional[OperatingHours] = None,
        clock: Clock = system_clock,
    ):
        self.db = db
        self.hours = hours or OperatingHours.from_config()
        self.clock = clock
        self.services = ServiceRepository()
        self.reservations = ReservationRepository()
        self.schedule = ScheduleRepository()

    def get_bookable_service(self, service_code: str) -> Service:
        service = self.services.get_by_code(self.db, service_code)
        if not service:
            raise ServiceNotFoundError(f"Service not found: {service_code}", service_code=service_code)
        if not service.is_active:
            raise ServiceInactiveError(service_code=service_code)
        return service

    def compute_slots(self, service_code: str, target_date: date) -> SlotsResult:
        """
        Candidate slots for a service on a date with an availability verdict each.

        Args:
            service_code: catalog code of an active service
            target_date: calendar day; past days are allowed and report PAST

        Returns:
            SlotsResult with chronologically ordered slots and metadata
        """
        service = self.get_bookable_service(service_code)
        snapshot = self.load_day(service, target_date)
        return self.evaluate_day(service, snapshot)

    def month_status(self, service_code: str, year: int, month: int) -> MonthAvailability:
        """
        Per-day booking status of a service over one calendar month.

        A day is available when any slot is free, full when slots exist but
        bookings or the daily limit took them all, and closed otherwise (past,
        closed weekday, closure, or no slot fits the opening hours).
        """
        service = self.get_bookable_service(service_code)
        _, last_day = calendar.monthrange(year, month)

        days = []
        for day in range(1, last_day + 1):
            result = self.evaluate_day(service, self.load_day(service, date(year, month, day)))
            days.append(self._summarize_day(result))

        logger.debug(
            f"🗓️ Month view for {service.code} {year}-{month:02d}: "
            f"{sum(1 for d in days if d.status == DayStatus.AVAILABLE)} days open"
        )
        return MonthAvailability(service_code=service.code, year=year, month=month, days=days)

    @staticmethod
    def _summarize_day(result: SlotsResult) -> DayAvailability:
        taken = {UnavailableReason.OVERLAP, UnavailableReason.CAPACITY_EXCEEDED}
        available = [s.start for s in result.slots if s.available]
        booked = sum(1 for s in result.slots if s.unavailable_reason in taken)

        if available:
            status = DayStatus.AVAILABLE
        elif booked:
            status = DayStatus.FULL
        else:
            status = DayStatus.CLOSED

        return DayAvailability(
            date=result.metadata.date,
            status=status,
            total_slots=len(result.slots),
            available_slots=len(available),
            booked_slots=booked,
            available_starts=available,
        )

    def load_day(
        self,
        service: Service,
        target_date: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> DaySnapshot:
        """Read opening rules, closures and live bookings for {service, date}"""
        overrides = self.schedule.get_window_overrides(self.db, service.id, weekday_name(target_date))
        windows = overrides if overrides is not None else self.hours.windows
        closed_day = overrides is None and self.hours.is_closed_weekday(target_date)

        snapshot = DaySnapshot(target_date=target_date, windows=windows, closed_day=closed_day)
        for closure in self.schedule.get_closures_for_day(self.db, target_date, service.id):
            self._apply_closure(snapshot, closure)

        live = self.reservations.get_live_for_day(
            self.db, service.id, target_date, exclude_reservation_id=exclude_reservation_id
        )
        snapshot.occupied = [
            occupied_interval(r.slot_start, r.duration_minutes, r.buffer_minutes) for r in live
        ]
        # Buffer is a scheduling courtesy, only appointment time is billed against capacity
        snapshot.committed_minutes = sum(r.duration_minutes for r in live)
        snapshot.daily_limit_minutes = self.services.get_active_limit_minutes(self.db, service.id)
        return snapshot

    def _apply_closure(self, snapshot: DaySnapshot, closure: ManualTimeClosure) -> None:
        if closure.slot_start:
            snapshot.closed_slots.append(
                closure_interval(closure.slot_start, self.hours.granularity_minutes)
            )
        elif closure.period:
            snapshot.closed_periods.add(Period(closure.period))
        else:
            snapshot.closed_day = True

    def judge(
        self,
        start: int,
        period: Period,
        duration_minutes: int,
        buffer_minutes: int,
        snapshot: DaySnapshot,
        now: datetime,
    ) -> Optional[UnavailableReason]:
        """
        Verdict for one candidate start; None means available.

        Precedence: PAST, CLOSED_DAY, OVERLAP, CAPACITY_EXCEEDED. Overlap wins
        over capacity because it is the more specific failure.
        """
        today = now.date()
        if snapshot.target_date < today:
            return UnavailableReason.PAST
        if snapshot.target_date == today and start <= now.hour * 60 + now.minute:
            return UnavailableReason.PAST

        if snapshot.closed_day or period in snapshot.closed_periods:
            return UnavailableReason.CLOSED_DAY
        # The appointment itself may not run into a closed slot; its buffer may
        for closed_start, closed_end in snapshot.closed_slots:
            if intervals_overlap(start, start + duration_minutes, closed_start, closed_end):
                return UnavailableReason.CLOSED_DAY

        end = start + duration_minutes + buffer_minutes
        for booked_start, booked_end in snapshot.occupied:
            if intervals_overlap(start, end, booked_start, booked_end):
                return UnavailableReason.OVERLAP

        if (
            snapshot.daily_limit_minutes is not None
            and snapshot.committed_minutes + duration_minutes > snapshot.daily_limit_minutes
        ):
            return UnavailableReason.CAPACITY_EXCEEDED

        return None

    def evaluate_day(self, service: Service, snapshot: DaySnapshot) -> SlotsResult:
        # Admission checks starts against this same grid
        step = self.hours.granularity_minutes
        now = self.clock()

        slots = []
        for window in snapshot.windows:
            for start in window.candidate_starts(service.duration_minutes, step):
                reason = self.judge(
                    start, window.period, service.duration_minutes, service.buffer_minutes, snapshot, now
                )
                slots.append(
                    Slot(
                        date=snapshot.target_date,
                        service_code=service.code,
                        period=window.period,
                        start=to_hhmm(start),
                        end=to_hhmm(start + service.duration_minutes),
                        available=reason is None,
                        unavailable_reason=reason,
                    )
                )
        slots.sort(key=lambda s: s.start)

        available_count = sum(1 for s in slots if s.available)
        limit = snapshot.daily_limit_minutes
        metadata = SlotsMetadata(
            date=snapshot.target_date,
            service_code=service.code,
            service_name=service.name,
            duration_minutes=service.duration_minutes,
            total_minutes=service.total_minutes,
            granularity_minutes=step,
            daily_limit_minutes=limit,
            committed_minutes=snapshot.committed_minutes,
            remaining_minutes=max(0, limit - snapshot.committed_minutes) if limit is not None else None,
            total_slots=len(slots),
            available_slots=available_count,
            booked_slots=len(slots) - available_count,
        )

        logger.debug(
            f"📅 Slots for {service.code} on {snapshot.target_date}: "
            f"{available_count}/{len(slots)} available"
        )
        return SlotsResult(slots=slots, metadata=metadata)
