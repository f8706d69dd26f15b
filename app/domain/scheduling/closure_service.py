"""Manual closure service - operator blocks on new bookings"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Caller, require_manage
from ...models import ManualTimeClosure, Reservation
from ...shared.errors import (
    ClosureNotFoundError,
    InvalidSlotGranularityError,
    ServiceNotFoundError,
)
from ..catalog.repository import ServiceRepository
from ..reservations.repository import ReservationRepository
from .availability_service import closure_interval
from .repository import ScheduleRepository
from .time_calculator import (
    OperatingHours,
    Period,
    find_window,
    intervals_overlap,
    to_minutes,
    weekday_name,
)

logger = logging.getLogger(__name__)


@dataclass
class ClosureConflicts:
    conflicts: list[Reservation] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def recommendation(self) -> str:
        if self.has_conflict:
            return "Closing only blocks new bookings; existing reservations are kept."
        return "No reservations affected; the closure can be applied right away."


class ClosureService:
    """Service layer for manual closures"""

    def __init__(self, db: Session, hours: Optional[OperatingHours] = None):
        self.db = db
        self.hours = hours or OperatingHours.from_config()
        self.repo = ScheduleRepository()
        self.services = ServiceRepository()
        self.reservations = ReservationRepository()

    def _resolve_service_id(self, service_code: Optional[str]) -> Optional[int]:
        if not service_code:
            return None
        service = self.services.get_by_code(self.db, service_code)
        if not service:
            raise ServiceNotFoundError(f"Service not found: {service_code}", service_code=service_code)
        return service.id

    def create_closure(
        self,
        caller: Caller,
        closure_date: date,
        period: Optional[str] = None,
        slot_start: Optional[str] = None,
        service_code: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ManualTimeClosure:
        """Close a whole date, one period of it, or one slot start"""
        require_manage(caller)
        service_id = self._resolve_service_id(service_code)
        if slot_start:
            self._check_on_grid(closure_date, slot_start, service_id)

        closure = self.repo.create_closure(
            self.db,
            closure_date=closure_date,
            period=Period(period).value if period else None,
            slot_start=slot_start,
            service_id=service_id,
            reason=reason,
            created_by=caller.caller_id,
            is_active=True,
        )

        scope = slot_start or period or "whole day"
        logger.info(
            f"🔒 Closure {closure.id} created for {closure_date} ({scope}, "
            f"service={service_code or 'all'}) by {caller.caller_id}"
        )
        return closure

    def list_closures(
        self, closure_date: date, service_code: Optional[str] = None
    ) -> list[ManualTimeClosure]:
        return self.repo.get_closures_for_day(
            self.db, closure_date, self._resolve_service_id(service_code)
        )

    def deactivate_closure(self, caller: Caller, closure_id: int) -> ManualTimeClosure:
        """Reopen a closed date/period/slot"""
        require_manage(caller)
        closure = self.repo.get_closure(self.db, closure_id)
        if not closure:
            raise ClosureNotFoundError(closure_id=closure_id)

        closure.is_active = False
        self.db.commit()
        self.db.refresh(closure)
        logger.info(f"🔓 Closure {closure_id} deactivated by {caller.caller_id}")
        return closure

    def check_conflicts(
        self,
        closure_date: date,
        period: Optional[str] = None,
        slot_start: Optional[str] = None,
        service_code: Optional[str] = None,
    ) -> ClosureConflicts:
        """Live reservations an intended closure would cover (they are kept)"""
        service_id = self._resolve_service_id(service_code)
        live = self.reservations.get_live_on_date(self.db, closure_date, service_id)

        closed = closure_interval(slot_start, self.hours.granularity_minutes) if slot_start else None

        result = ClosureConflicts()
        for r in live:
            if period and r.period != period:
                continue
            if closed:
                start = to_minutes(r.slot_start)
                # Same rule the availability engine applies to new bookings
                if not intervals_overlap(start, start + r.duration_minutes, *closed):
                    continue
            result.conflicts.append(r)
        return result

    def _check_on_grid(self, closure_date: date, slot_start: str, service_id: Optional[int]) -> None:
        """A slot closure must start on a candidate boundary of that day's windows"""
        overrides = self.repo.get_window_overrides(self.db, service_id, weekday_name(closure_date))
        windows = overrides if overrides is not None else self.hours.windows
        start = to_minutes(slot_start)
        step = self.hours.granularity_minutes
        window = find_window(start, windows)
        if window is None or (start - window.open) % step != 0:
            raise InvalidSlotGranularityError(
                f"{slot_start} is not a slot boundary on {closure_date}",
                slot_start=slot_start,
                granularity_minutes=step,
            )
