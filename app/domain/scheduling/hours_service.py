"""
Opening hours service - weekday window overrides

Staff replace the configured default hours for one weekday by storing its
windows, either clinic-wide or for a single service. Service rows win over
clinic rows, and clinic rows win over the configured defaults. Existing
reservations are never touched; only new bookings see the new windows.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Caller, require_manage
from ...models import ClinicTimeSlot
from ...shared.errors import InvalidOpeningHoursError, ServiceNotFoundError
from ..catalog.repository import ServiceRepository
from .repository import ScheduleRepository
from .time_calculator import (
    WEEKDAYS,
    OperatingHours,
    Period,
    Window,
    intervals_overlap,
    sort_windows,
    to_hhmm,
    to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass
class WeekdayHours:
    weekday: str
    source: str  # "service", "clinic" or "default"
    windows: list[Window]

    @property
    def closed(self) -> bool:
        return not self.windows


class HoursService:
    """Service layer for weekday opening-hour overrides"""

    def __init__(self, db: Session, hours: Optional[OperatingHours] = None):
        self.db = db
        self.hours = hours or OperatingHours.from_config()
        self.repo = ScheduleRepository()
        self.services = ServiceRepository()

    def _resolve_service_id(self, service_code: Optional[str]) -> Optional[int]:
        if not service_code:
            return None
        service = self.services.get_by_code(self.db, service_code)
        if not service:
            raise ServiceNotFoundError(f"Service not found: {service_code}", service_code=service_code)
        return service.id

    def weekly_hours(self, service_code: Optional[str] = None) -> list[WeekdayHours]:
        """Effective windows for each weekday, Monday first, with where they come from"""
        service_id = self._resolve_service_id(service_code)
        clinic_rows = self._by_weekday(self.repo.get_overrides_in_scope(self.db, None))
        service_rows = (
            self._by_weekday(self.repo.get_overrides_in_scope(self.db, service_id))
            if service_id is not None
            else {}
        )

        week = []
        for weekday in WEEKDAYS:
            if weekday in service_rows:
                week.append(WeekdayHours(weekday, "service", service_rows[weekday]))
            elif weekday in clinic_rows:
                week.append(WeekdayHours(weekday, "clinic", clinic_rows[weekday]))
            elif weekday in self.hours.closed_weekdays:
                week.append(WeekdayHours(weekday, "default", []))
            else:
                week.append(WeekdayHours(weekday, "default", list(self.hours.windows)))
        return week

    def set_weekday_hours(
        self,
        caller: Caller,
        weekday: str,
        windows: list[dict],
        service_code: Optional[str] = None,
    ) -> WeekdayHours:
        """
        Replace the stored windows of one weekday.

        Args:
            weekday: MONDAY ... SUNDAY, case-insensitive
            windows: dicts with period, start_time and end_time ("HH:MM")
            service_code: limit the override to one service; None is clinic-wide

        Raises:
            InvalidOpeningHoursError: unknown weekday or period, empty or
                inverted windows, a period listed twice, or overlapping windows
        """
        require_manage(caller)
        day = self._check_weekday(weekday)
        service_id = self._resolve_service_id(service_code)
        parsed = self._parse_windows(windows)

        rows = self.repo.replace_window_overrides(self.db, day, service_id, parsed)
        logger.info(
            f"🕘 Opening hours for {day} (service={service_code or 'all'}) set by {caller.caller_id}: "
            + ", ".join(f"{r.period} {r.start_time}-{r.end_time}" for r in rows)
        )
        return WeekdayHours(day, "service" if service_id else "clinic", parsed)

    def clear_weekday_hours(
        self, caller: Caller, weekday: str, service_code: Optional[str] = None
    ) -> int:
        """Drop a weekday's stored windows so the next scope down applies again"""
        require_manage(caller)
        day = self._check_weekday(weekday)
        service_id = self._resolve_service_id(service_code)

        deleted = self.repo.delete_window_overrides(self.db, day, service_id)
        logger.info(
            f"🕘 Opening hours override for {day} (service={service_code or 'all'}) "
            f"cleared by {caller.caller_id}: {deleted} window(s) removed"
        )
        return deleted

    @staticmethod
    def _check_weekday(weekday: str) -> str:
        day = (weekday or "").upper()
        if day not in WEEKDAYS:
            raise InvalidOpeningHoursError(f"Unknown weekday '{weekday}'", weekday=weekday)
        return day

    @staticmethod
    def _parse_windows(windows: list[dict]) -> list[Window]:
        if not windows:
            # An empty override would read as "no override"; close days with a closure instead
            raise InvalidOpeningHoursError("At least one opening window is required")

        parsed = []
        for w in windows:
            try:
                window = Window(Period(w["period"]), to_minutes(w["start_time"]), to_minutes(w["end_time"]))
            except (KeyError, ValueError) as e:
                raise InvalidOpeningHoursError(f"Invalid opening window {w}: {e}", window=w)
            if window.close <= window.open:
                raise InvalidOpeningHoursError(
                    f"{window.period.value} closes before it opens", period=window.period.value
                )
            parsed.append(window)

        periods = [w.period for w in parsed]
        if len(set(periods)) != len(periods):
            raise InvalidOpeningHoursError("Each period can only be listed once")

        parsed = sort_windows(parsed)
        for earlier, later in zip(parsed, parsed[1:]):
            if intervals_overlap(earlier.open, earlier.close, later.open, later.close):
                raise InvalidOpeningHoursError(
                    f"{earlier.period.value} and {later.period.value} overlap",
                    periods=[earlier.period.value, later.period.value],
                    overlap_start=to_hhmm(later.open),
                )
        return parsed

    @staticmethod
    def _by_weekday(rows: list[ClinicTimeSlot]) -> dict[str, list[Window]]:
        grouped: dict[str, list[Window]] = {}
        for r in rows:
            grouped.setdefault(r.day_of_week, []).append(
                Window(Period(r.period), to_minutes(r.start_time), to_minutes(r.end_time))
            )
        return {day: sort_windows(ws) for day, ws in grouped.items()}
