import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Service(Base):
    """A bookable medical service (treatment) in the clinic catalog"""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)  # Immutable external key
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    duration_minutes = Column(Integer, nullable=False)  # 10-480
    buffer_minutes = Column(Integer, default=10, nullable=False)  # 0-60, prep time after a visit
    is_active = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    daily_limit = relationship(
        "ServiceReservationLimit", back_populates="service", uselist=False, cascade="all, delete-orphan"
    )
    reservations = relationship("Reservation", back_populates="service")

    @property
    def total_minutes(self) -> int:
        return self.duration_minutes + self.buffer_minutes


class ServiceReservationLimit(Base):
    """Optional daily ceiling, in minutes of appointment time, for one service"""

    __tablename__ = "service_reservation_limits"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), unique=True, nullable=False)
    daily_limit_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service", back_populates="daily_limit")


class Reservation(Base):
    """A patient's booking of one service slot on one date"""

    __tablename__ = "reservations"
    __table_args__ = (Index("ix_reservations_service_date_status", "service_id", "date", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )

    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    service_code = Column(String(50), nullable=False, index=True)
    service_name = Column(String(100), nullable=True)  # Snapshot for listings

    # Scheduling
    date = Column(Date, nullable=False, index=True)
    slot_start = Column(String(5), nullable=False)  # HH:MM format
    slot_end = Column(String(5), nullable=False)  # slot_start + duration_minutes
    period = Column(String(20), nullable=False)  # MORNING, AFTERNOON, EVENING
    # Snapshots taken at admission; later catalog edits never touch existing bookings
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, default=0, nullable=False)

    # Status workflow: PENDING → CONFIRMED → COMPLETED / NO_SHOW, CANCELLED from either live state
    status = Column(String(20), default="PENDING", nullable=False, index=True)

    # Patient identity (opaque to the scheduling engine)
    patient_name = Column(String(100), nullable=False)
    patient_phone = Column(String(30), nullable=False)
    patient_email = Column(String(255), nullable=True)

    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    status_changed_at = Column(DateTime, nullable=True)

    service = relationship("Service", back_populates="reservations")


class ClinicTimeSlot(Base):
    """Opening window override for one weekday and period.

    When a weekday has rows here they replace the configured default hours for
    that weekday. Rows with a service_id only apply to that service and win over
    global rows (service_id NULL).
    """

    __tablename__ = "clinic_time_slots"
    __table_args__ = (
        UniqueConstraint("day_of_week", "period", "service_id", name="uq_clinic_time_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    day_of_week = Column(String(10), nullable=False, index=True)  # MONDAY ... SUNDAY
    period = Column(String(20), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)


class ManualTimeClosure(Base):
    """Operator-declared block on new bookings.

    closure_date only: the whole day is closed. With period: the whole period.
    With slot_start: just that candidate start. service_id NULL applies to every
    service. Existing reservations are kept.
    """

    __tablename__ = "manual_time_closures"

    id = Column(Integer, primary_key=True, index=True)
    closure_date = Column(Date, nullable=False, index=True)
    period = Column(String(20), nullable=True)
    slot_start = Column(String(5), nullable=True)  # HH:MM
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    reason = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")
