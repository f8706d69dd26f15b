"""Reservation service - lookups, staff listing, status transitions and field edits"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Caller, require_manage
from ...models import Reservation
from ...shared.clock import Clock, system_clock
from ...shared.errors import (
    ForbiddenError,
    InvalidPhoneError,
    ReservationNotFoundError,
    SchedulingError,
)
from ...shared.validators import validate_phone
from .repository import ReservationRepository
from .schemas import ReservationUpdate
from .state_machine import apply_transition, ensure_editable

logger = logging.getLogger(__name__)

# Schema field -> column
EDITABLE_FIELDS = {
    "patientName": "patient_name",
    "phone": "patient_phone",
    "email": "patient_email",
    "notes": "notes",
    "adminNotes": "admin_notes",
}

LOOKUP_WINDOW_DAYS = 90
LOOKUP_MAX_RESULTS = 10


class ReservationService:
    """Service layer for reservation business logic"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.repo = ReservationRepository()

    def get_reservation(self, reservation_ref: str) -> Reservation:
        reservation = self.repo.get_by_ref(self.db, reservation_ref)
        if not reservation:
            raise ReservationNotFoundError(reservation_ref=reservation_ref)
        return reservation

    def lookup_by_phone(self, phone: str) -> list[Reservation]:
        """
        Patient self-service lookup: recent reservations booked under a phone number.

        The number is normalized the same way bookings store it, so
        "01012345678" and "010-1234-5678" find the same rows. Only the last
        LOOKUP_WINDOW_DAYS days are searched, newest first.

        Raises:
            InvalidPhoneError: if the number cannot be normalized
        """
        try:
            normalized = validate_phone(phone)
        except ValueError:
            raise InvalidPhoneError(phone=phone)
        if not normalized:
            raise InvalidPhoneError(phone=phone)

        since = self.clock().date() - timedelta(days=LOOKUP_WINDOW_DAYS)
        found = self.repo.find_by_phone(self.db, normalized, since, LOOKUP_MAX_RESULTS)
        logger.info(f"🔎 Phone lookup since {since}: {len(found)} reservation(s)")
        return found

    def list_reservations(
        self,
        caller: Caller,
        target_date: Optional[date] = None,
        status: Optional[str] = None,
        service_code: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Reservation], int]:
        """Staff list view with filters"""
        require_manage(caller)
        return self.repo.search_reservations(
            self.db,
            target_date=target_date,
            status=status,
            service_code=service_code,
            search=search,
            limit=limit,
            offset=offset,
        )

    def update_reservation(
        self, reservation_ref: str, data: ReservationUpdate, caller: Caller
    ) -> Reservation:
        """
        Apply a status transition and/or field edits in one transaction.

        Edits are checked against the status the reservation has before the
        transition, so a terminal reservation rejects them and a request that
        both cancels and edits notes is judged on the live state.
        """
        reservation = self.get_reservation(reservation_ref)

        payload = data.model_dump(exclude_unset=True)
        edits = {
            column: payload[field]
            for field, column in EDITABLE_FIELDS.items()
            if field in payload and payload[field] is not None
        }

        try:
            for column in edits:
                ensure_editable(reservation, column)
            if "admin_notes" in edits and not caller.can_manage:
                raise ForbiddenError("Only clinic staff can edit admin notes")

            now = self.clock()
            if data.status is not None:
                apply_transition(reservation, data.status, caller, now, cancel_reason=data.cancelReason)

            for column, value in edits.items():
                setattr(reservation, column, value)
            if edits:
                reservation.updated_at = now

            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise

        self.db.refresh(reservation)
        if edits:
            logger.info(f"📝 Reservation {reservation.id} updated fields: {', '.join(edits)}")
        return reservation
