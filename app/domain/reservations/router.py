"""Reservation router - FastAPI endpoints for booking and lifecycle operations"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Caller, get_current_caller
from ...database import get_db
from ...models import Reservation
from ...shared.clock import Clock, get_clock
from ..scheduling.time_calculator import OperatingHours, get_operating_hours
from .admission_service import AdmissionController
from .schemas import (
    PatientReservationResponse,
    PhoneLookupResponse,
    ReservationCreate,
    ReservationListResponse,
    ReservationResponse,
    ReservationUpdate,
    RescheduleRequest,
)
from .service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


def get_reservation_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ReservationService:
    """Dependency injection for ReservationService"""
    return ReservationService(db, clock=clock)


def get_admission_controller(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    hours: OperatingHours = Depends(get_operating_hours),
) -> AdmissionController:
    """Dependency injection for AdmissionController"""
    return AdmissionController(db, hours=hours, clock=clock)


def to_response(r: Reservation) -> ReservationResponse:
    return ReservationResponse(
        id=r.id,
        publicId=r.public_id,
        serviceCode=r.service_code,
        serviceName=r.service_name,
        date=r.date,
        slotStart=r.slot_start,
        slotEnd=r.slot_end,
        period=r.period,
        durationMinutes=r.duration_minutes,
        bufferMinutes=r.buffer_minutes,
        status=r.status,
        patientName=r.patient_name,
        phone=r.patient_phone,
        email=r.patient_email,
        notes=r.notes,
        adminNotes=r.admin_notes,
        cancelReason=r.cancel_reason,
        createdAt=r.created_at,
        updatedAt=r.updated_at,
        statusChangedAt=r.status_changed_at,
    )


# Admission blocks on the per-slot lock, so these handlers are sync and run
# in the threadpool instead of on the event loop.


@router.post("", response_model=ReservationResponse, status_code=201)
def create_reservation(
    data: ReservationCreate,
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Book a slot; the reservation starts PENDING"""
    reservation = controller.admit(data.serviceCode, data.date, data.slotStart, data.patient)
    return to_response(reservation)


@router.post("/{reservation_ref}/reschedule", response_model=ReservationResponse)
def reschedule_reservation(
    reservation_ref: str,
    data: RescheduleRequest,
    caller: Caller = Depends(get_current_caller),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Move a live reservation to another slot under the admission rules"""
    reservation = controller.reschedule(reservation_ref, data.date, data.slotStart, caller)
    return to_response(reservation)


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    target_date: Optional[date] = Query(None, alias="date"),
    status: Optional[str] = Query(None),
    serviceCode: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_current_caller),
    service: ReservationService = Depends(get_reservation_service),
):
    """Staff list of reservations with filters"""
    page, total = service.list_reservations(
        caller,
        target_date=target_date,
        status=status,
        service_code=serviceCode,
        search=search,
        limit=limit,
        offset=offset,
    )
    return ReservationListResponse(
        reservations=[to_response(r) for r in page],
        total=total,
        limit=limit,
        offset=offset,
    )


# Declared before /{reservation_ref} so "lookup" is not read as a reference
@router.get("/lookup", response_model=PhoneLookupResponse)
async def lookup_by_phone(
    phone: str = Query(..., min_length=1),
    service: ReservationService = Depends(get_reservation_service),
):
    """Patient lookup of their recent reservations by phone number"""
    found = service.lookup_by_phone(phone)
    return PhoneLookupResponse(
        reservations=[
            PatientReservationResponse(
                id=r.id,
                publicId=r.public_id,
                serviceCode=r.service_code,
                serviceName=r.service_name,
                date=r.date,
                slotStart=r.slot_start,
                slotEnd=r.slot_end,
                period=r.period,
                status=r.status,
                patientName=r.patient_name,
                phone=r.patient_phone,
                notes=r.notes,
                cancelReason=r.cancel_reason,
                createdAt=r.created_at,
            )
            for r in found
        ],
        count=len(found),
    )


@router.get("/{reservation_ref}", response_model=ReservationResponse)
async def get_reservation(
    reservation_ref: str,
    service: ReservationService = Depends(get_reservation_service),
):
    """Get a reservation by id or public id"""
    return to_response(service.get_reservation(reservation_ref))


@router.patch("/{reservation_ref}", response_model=ReservationResponse)
async def update_reservation(
    reservation_ref: str,
    data: ReservationUpdate,
    caller: Caller = Depends(get_current_caller),
    service: ReservationService = Depends(get_reservation_service),
):
    """Status transition and/or field edits"""
    reservation = service.update_reservation(reservation_ref, data, caller)
    return to_response(reservation)
