"""Scheduling error taxonomy.

Every rejection raised by the engine carries a machine-readable ``code`` so a
presentation layer can show an actionable message instead of a generic failure.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all scheduling engine errors"""

    code = "SCHEDULING_ERROR"
    http_status = 400
    default_message = "Scheduling request failed"

    def __init__(self, message: Optional[str] = None, **metadata: Any):
        self.message = message or self.default_message
        self.metadata = metadata
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "metadata": self.metadata}


# ============================================================================
# VALIDATION ERRORS (caller-correctable, never retried by the engine)
# ============================================================================


class ServiceNotFoundError(SchedulingError):
    code = "SERVICE_NOT_FOUND"
    http_status = 404
    default_message = "Service not found"


class ServiceInactiveError(SchedulingError):
    code = "SERVICE_INACTIVE"
    http_status = 400
    default_message = "Service is not currently bookable"


class PastDateError(SchedulingError):
    code = "PAST_DATE"
    http_status = 400
    default_message = "Cannot book appointments in the past"


class InvalidSlotGranularityError(SchedulingError):
    code = "INVALID_SLOT_GRANULARITY"
    http_status = 400
    default_message = "Start time is not a valid slot boundary"


class SlotClosedError(SchedulingError):
    code = "SLOT_CLOSED"
    http_status = 409
    default_message = "The clinic is closed for this slot"


class CancelReasonRequiredError(SchedulingError):
    code = "CANCEL_REASON_REQUIRED"
    http_status = 400
    default_message = "A cancellation reason is required"


class InvalidPhoneError(SchedulingError):
    code = "INVALID_PHONE_FORMAT"
    http_status = 400
    default_message = "Phone number must look like 010-1234-5678"


class InvalidOpeningHoursError(SchedulingError):
    code = "INVALID_OPENING_HOURS"
    http_status = 400
    default_message = "Opening hours are invalid"


class InvalidServiceConfigError(SchedulingError):
    code = "INVALID_SERVICE_CONFIG"
    http_status = 400
    default_message = "Invalid service configuration"


# ============================================================================
# ADMISSION-CONTENTION ERRORS (expected under load, caller re-queries and retries)
# ============================================================================


class AdmissionError(SchedulingError):
    """Base class for rejected admissions"""

    code = "ADMISSION_REJECTED"
    http_status = 409


class SlotOverlapError(AdmissionError):
    code = "SLOT_OVERLAP"
    default_message = "This time slot is already booked"


class CapacityExceededError(AdmissionError):
    code = "CAPACITY_EXCEEDED"
    default_message = "Daily booking capacity for this service is full"


class AdmissionTimeoutError(AdmissionError):
    code = "ADMISSION_TIMEOUT"
    http_status = 503
    default_message = "Booking is busy, please try again"


# ============================================================================
# STATE ERRORS (business-rule violations)
# ============================================================================


class TerminalStateError(SchedulingError):
    code = "TERMINAL_STATE"
    http_status = 409
    default_message = "Reservation is in a terminal state"


class ImmutableFieldError(SchedulingError):
    code = "IMMUTABLE_FIELD"
    http_status = 409
    default_message = "Field cannot be changed in the reservation's current state"


class InvalidTransitionError(SchedulingError):
    code = "INVALID_TRANSITION"
    http_status = 409
    default_message = "Status transition is not allowed"


# ============================================================================
# ACCESS / LOOKUP / STORE
# ============================================================================


class ForbiddenError(SchedulingError):
    code = "FORBIDDEN"
    http_status = 403
    default_message = "Clinic staff permission required"


class ReservationNotFoundError(SchedulingError):
    code = "RESERVATION_NOT_FOUND"
    http_status = 404
    default_message = "Reservation not found"


class ClosureNotFoundError(SchedulingError):
    code = "CLOSURE_NOT_FOUND"
    http_status = 404
    default_message = "Closure not found"


class StoreUnavailableError(SchedulingError):
    code = "STORE_UNAVAILABLE"
    http_status = 503
    default_message = "Reservation store is temporarily unavailable"
