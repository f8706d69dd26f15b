"""
Booking Admission Controller

Turns a selected slot into a persisted PENDING reservation. Every rule the
availability engine applies is re-checked at commit time inside the
{service, date} serialization boundary, so two callers racing for the same slot
or the last unit of capacity cannot both succeed.
"""

import logging
import time
from datetime import date
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...auth import Caller
from ...config import ADMISSION_LOCK_TIMEOUT_SECONDS, ADMISSION_RETRY_BACKOFF_SECONDS
from ...models import Reservation, Service
from ...shared.clock import Clock, system_clock
from ...shared.errors import (
    CapacityExceededError,
    InvalidSlotGranularityError,
    PastDateError,
    ReservationNotFoundError,
    SlotClosedError,
    SlotOverlapError,
    StoreUnavailableError,
)
from ..scheduling.availability_service import (
    AvailabilityService,
    DaySnapshot,
    UnavailableReason,
)
from ..scheduling.time_calculator import OperatingHours, find_window, to_hhmm, to_minutes
from .locks import AdmissionLockRegistry, acquire_store_lock, admission_key, admission_locks
from .repository import ReservationRepository
from .schemas import PatientInfo
from .state_machine import INITIAL_STATUS, ensure_editable

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SUGGESTIONS = 3


class AdmissionController:
    """Atomic check-and-commit of new bookings"""

    def __init__(
        self,
        db: Session,
        hours: Optional[OperatingHours] = None,
        clock: Clock = system_clock,
        locks: AdmissionLockRegistry = admission_locks,
        lock_timeout: float = ADMISSION_LOCK_TIMEOUT_SECONDS,
        retry_backoff: float = ADMISSION_RETRY_BACKOFF_SECONDS,
    ):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.lock_timeout = lock_timeout
        self.retry_backoff = retry_backoff
        self.engine = AvailabilityService(db, hours=hours, clock=clock)
        self.repo = ReservationRepository()

    def admit(
        self,
        service_code: str,
        target_date: date,
        slot_start: str,
        patient: PatientInfo,
    ) -> Reservation:
        """
        Admit a booking or raise.

        Raises:
            ServiceNotFoundError, ServiceInactiveError, InvalidSlotGranularityError,
            PastDateError, SlotClosedError, SlotOverlapError, CapacityExceededError,
            AdmissionTimeoutError, StoreUnavailableError

        No row is written on any failure.
        """
        start = self._parse_start(slot_start)
        key = admission_key(service_code, target_date)

        with self.locks.hold(key, self.lock_timeout):
            reservation = self._with_retry(
                lambda: self._admit_locked(key, service_code, target_date, start, patient)
            )

        logger.info(
            f"✅ Reservation {reservation.id} admitted: {service_code} on {target_date} "
            f"at {reservation.slot_start} ({reservation.period})"
        )
        return reservation

    def reschedule(
        self,
        reservation_ref: str,
        target_date: date,
        slot_start: str,
        caller: Caller,
    ) -> Reservation:
        """
        Move a live reservation to another slot of the same service.

        The reservation is excluded from its own overlap and capacity view, and
        the move goes through the same rules and lock as a new admission.
        """
        start = self._parse_start(slot_start)
        reservation = self.repo.get_by_ref(self.db, reservation_ref)
        if not reservation:
            raise ReservationNotFoundError(reservation_ref=reservation_ref)
        ensure_editable(reservation, "date")

        key = admission_key(reservation.service_code, target_date)
        with self.locks.hold(key, self.lock_timeout):
            moved = self._with_retry(
                lambda: self._reschedule_locked(key, reservation.id, target_date, start)
            )

        logger.info(
            f"📆 Reservation {moved.id} rescheduled to {target_date} {moved.slot_start} "
            f"by {caller.caller_id or 'anonymous'}"
        )
        return moved

    # ------------------------------------------------------------------
    # Inside the serialization boundary
    # ------------------------------------------------------------------

    def _admit_locked(
        self, key: str, service_code: str, target_date: date, start: int, patient: PatientInfo
    ) -> Reservation:
        try:
            acquire_store_lock(self.db, key)
            # Fresh read: the service may have been edited or deactivated meanwhile
            service = self.engine.get_bookable_service(service_code)
            snapshot = self.engine.load_day(service, target_date)
            period = self._check_slot(service, snapshot, start)

            now = self.clock()
            reservation = Reservation(
                service_id=service.id,
                service_code=service.code,
                service_name=service.name,
                date=target_date,
                slot_start=to_hhmm(start),
                slot_end=to_hhmm(start + service.duration_minutes),
                period=period,
                duration_minutes=service.duration_minutes,
                buffer_minutes=service.buffer_minutes,
                status=INITIAL_STATUS.value,
                patient_name=patient.name,
                patient_phone=patient.phone,
                patient_email=patient.email,
                notes=patient.notes,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(self.db, reservation)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(reservation)
        return reservation

    def _reschedule_locked(
        self, key: str, reservation_id: int, target_date: date, start: int
    ) -> Reservation:
        try:
            acquire_store_lock(self.db, key)
            # Status may have changed while waiting for the lock
            reservation = self.repo.get_for_update(self.db, reservation_id)
            if not reservation:
                raise ReservationNotFoundError(reservation_ref=str(reservation_id))
            ensure_editable(reservation, "date")
            service = self.engine.get_bookable_service(reservation.service_code)
            snapshot = self.engine.load_day(
                service, target_date, exclude_reservation_id=reservation.id
            )
            period = self._check_slot(service, snapshot, start)

            now = self.clock()
            reservation.date = target_date
            reservation.slot_start = to_hhmm(start)
            reservation.slot_end = to_hhmm(start + service.duration_minutes)
            reservation.period = period
            reservation.duration_minutes = service.duration_minutes
            reservation.buffer_minutes = service.buffer_minutes
            reservation.updated_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(reservation)
        return reservation

    def _check_slot(self, service: Service, snapshot: DaySnapshot, start: int) -> str:
        """Apply the availability rules to one start time; returns its period"""
        window = find_window(start, snapshot.windows)
        step = self.engine.hours.granularity_minutes
        if window is None or start not in window.candidate_starts(service.duration_minutes, step):
            raise InvalidSlotGranularityError(
                f"{to_hhmm(start)} is not a bookable start time for {service.code}",
                slot_start=to_hhmm(start),
                granularity_minutes=step,
            )

        reason = self.engine.judge(
            start,
            window.period,
            service.duration_minutes,
            service.buffer_minutes,
            snapshot,
            self.clock(),
        )
        if reason is None:
            return window.period.value

        metadata = {
            "service_code": service.code,
            "requested_date": snapshot.target_date.isoformat(),
            "slot_start": to_hhmm(start),
            "requested_period": window.period.value,
        }
        if reason == UnavailableReason.PAST:
            raise PastDateError(**metadata)
        if reason == UnavailableReason.CLOSED_DAY:
            raise SlotClosedError(**metadata)

        metadata["suggested_times"] = self._suggest(service, snapshot, window.period.value)
        logger.info(f"🚫 Admission rejected ({reason.value}) for {service.code} at {to_hhmm(start)}")
        if reason == UnavailableReason.OVERLAP:
            raise SlotOverlapError(**metadata)

        limit = snapshot.daily_limit_minutes
        raise CapacityExceededError(
            remaining_minutes=max(0, limit - snapshot.committed_minutes),
            required_minutes=service.duration_minutes,
            daily_limit_minutes=limit,
            **metadata,
        )

    def _suggest(self, service: Service, snapshot: DaySnapshot, period: str) -> list[str]:
        """Up to three free starts in the same period, from the locked snapshot"""
        result = self.engine.evaluate_day(service, snapshot)
        return [
            s.start for s in result.slots if s.available and s.period.value == period
        ][:MAX_SUGGESTIONS]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_retry(self, attempt: Callable[[], T]) -> T:
        """Retry a transient store fault once with backoff, then surface it"""
        try:
            return attempt()
        except OperationalError as e:
            logger.warning(f"⚠️ Store fault during admission, retrying once: {e}")
            time.sleep(self.retry_backoff)

        try:
            return attempt()
        except OperationalError as e:
            logger.error(f"❌ Store unavailable during admission: {e}")
            raise StoreUnavailableError() from e

    @staticmethod
    def _parse_start(slot_start: str) -> int:
        try:
            return to_minutes(slot_start)
        except ValueError:
            raise InvalidSlotGranularityError(
                f"Invalid start time '{slot_start}', expected HH:MM", slot_start=slot_start
            )
