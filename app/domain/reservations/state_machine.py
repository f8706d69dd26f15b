"""
Reservation lifecycle state machine.

    PENDING ──► CONFIRMED ──► COMPLETED
       │            ├───────► NO_SHOW
       └──► CANCELLED ◄┘

COMPLETED, CANCELLED and NO_SHOW are terminal. Only PENDING and CONFIRMED
reservations hold a slot and count against daily capacity.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ...auth import Caller
from ...models import Reservation
from ...shared.errors import (
    CancelReasonRequiredError,
    ForbiddenError,
    ImmutableFieldError,
    InvalidTransitionError,
    TerminalStateError,
)

logger = logging.getLogger(__name__)


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


INITIAL_STATUS = ReservationStatus.PENDING
LIVE_STATUSES = [ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value]
TERMINAL_STATUSES = {
    ReservationStatus.COMPLETED,
    ReservationStatus.CANCELLED,
    ReservationStatus.NO_SHOW,
}


@dataclass(frozen=True)
class Transition:
    source: ReservationStatus
    target: ReservationStatus
    operator_only: bool = True
    requires_reason: bool = False


TRANSITIONS = {
    (t.source, t.target): t
    for t in [
        Transition(ReservationStatus.PENDING, ReservationStatus.CONFIRMED),
        Transition(
            ReservationStatus.PENDING,
            ReservationStatus.CANCELLED,
            operator_only=False,
            requires_reason=True,
        ),
        Transition(ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED),
        Transition(
            ReservationStatus.CONFIRMED,
            ReservationStatus.CANCELLED,
            operator_only=False,
            requires_reason=True,
        ),
        Transition(ReservationStatus.CONFIRMED, ReservationStatus.NO_SHOW),
    ]
}


def is_live(status: str) -> bool:
    return status in LIVE_STATUSES


def allowed_targets(status: str) -> list[str]:
    return [target.value for (source, target) in TRANSITIONS if source.value == status]


def apply_transition(
    reservation: Reservation,
    target: str,
    caller: Caller,
    now: datetime,
    cancel_reason: Optional[str] = None,
) -> Reservation:
    """
    Move a reservation to a new status, enforcing the transition table.

    The reservation is only mutated once every check has passed, so a rejected
    transition leaves it exactly as it was. Terminal reservations reject every
    request, including one for the status they already have.

    Raises:
        TerminalStateError: the reservation is COMPLETED, CANCELLED or NO_SHOW
        InvalidTransitionError: the pair is not in the transition table
        ForbiddenError: operator-only transition without can_manage
        CancelReasonRequiredError: cancellation without a reason
    """
    current = ReservationStatus(reservation.status)
    if current in TERMINAL_STATUSES:
        raise TerminalStateError(
            f"Reservation is {current.value} and can no longer change status",
            current_status=current.value,
            requested_status=target,
        )

    try:
        requested = ReservationStatus(target)
    except ValueError:
        raise InvalidTransitionError(
            f"Unknown status '{target}'",
            current_status=current.value,
            allowed=allowed_targets(current.value),
        )

    # Re-asserting the current live status is a no-op
    if requested == current:
        return reservation

    transition = TRANSITIONS.get((current, requested))
    if transition is None:
        raise InvalidTransitionError(
            f"Cannot move a {current.value} reservation to {requested.value}",
            current_status=current.value,
            requested_status=requested.value,
            allowed=allowed_targets(current.value),
        )

    if transition.operator_only and not caller.can_manage:
        raise ForbiddenError(f"Only clinic staff can mark a reservation {requested.value}")

    reason = (cancel_reason or "").strip()
    if transition.requires_reason and not reason:
        raise CancelReasonRequiredError()

    reservation.status = requested.value
    reservation.status_changed_at = now
    reservation.updated_at = now
    if transition.requires_reason:
        reservation.cancel_reason = reason

    logger.info(
        f"🔁 Reservation {reservation.id} transitioned: {current.value} → {requested.value}"
        f" (by {caller.caller_id or 'anonymous'})"
    )
    return reservation


def ensure_editable(reservation: Reservation, field: str) -> None:
    """Field edits are only allowed while the reservation is live"""
    if not is_live(reservation.status):
        raise ImmutableFieldError(
            f"'{field}' cannot be changed on a {reservation.status} reservation",
            field=field,
            current_status=reservation.status,
        )
