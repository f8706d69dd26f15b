"""Scheduling router - slot availability, opening hours and manual closures"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Caller, get_current_caller, require_manage
from ...database import get_db
from ...models import ManualTimeClosure
from ...shared.clock import Clock, get_clock
from .availability_service import AvailabilityService, DayStatus, Slot
from .closure_service import ClosureService
from .hours_service import HoursService, WeekdayHours
from .schemas import (
    ClosureConflict,
    ClosureConflictResponse,
    ClosureCreate,
    ClosureResponse,
    DayAvailabilityResponse,
    MonthAvailabilityResponse,
    MonthSummary,
    OpeningHoursClearResponse,
    OpeningHoursResponse,
    OpeningWindowResponse,
    SlotResponse,
    SlotsMetadataResponse,
    SlotsResponse,
    WeekdayHoursResponse,
    WeekdayHoursUpdate,
)
from .time_calculator import OperatingHours, get_operating_hours, to_hhmm

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_availability_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    hours: OperatingHours = Depends(get_operating_hours),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db, hours=hours, clock=clock)


def get_closure_service(
    db: Session = Depends(get_db),
    hours: OperatingHours = Depends(get_operating_hours),
) -> ClosureService:
    """Dependency injection for ClosureService"""
    return ClosureService(db, hours=hours)


def get_hours_service(
    db: Session = Depends(get_db),
    hours: OperatingHours = Depends(get_operating_hours),
) -> HoursService:
    """Dependency injection for HoursService"""
    return HoursService(db, hours=hours)


def slot_to_response(s: Slot) -> SlotResponse:
    return SlotResponse(
        date=s.date,
        serviceCode=s.service_code,
        period=s.period.value,
        start=s.start,
        end=s.end,
        available=s.available,
        unavailableReason=s.unavailable_reason.value if s.unavailable_reason else None,
    )


def weekday_to_response(w: WeekdayHours) -> WeekdayHoursResponse:
    return WeekdayHoursResponse(
        weekday=w.weekday,
        source=w.source,
        closed=w.closed,
        windows=[
            OpeningWindowResponse(
                period=window.period.value, startTime=to_hhmm(window.open), endTime=to_hhmm(window.close)
            )
            for window in w.windows
        ],
    )


def closure_to_response(c: ManualTimeClosure) -> ClosureResponse:
    return ClosureResponse(
        id=c.id,
        closureDate=c.closure_date,
        period=c.period,
        slotStart=c.slot_start,
        serviceCode=c.service.code if c.service else None,
        reason=c.reason,
        createdBy=c.created_by,
        isActive=c.is_active,
        createdAt=c.created_at,
    )


# ============================================================================
# SLOTS
# ============================================================================


@router.get("/slots", response_model=SlotsResponse)
async def get_slots(
    serviceCode: str = Query(...),
    target_date: date = Query(..., alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Candidate slots for a service on a date, each with an availability verdict"""
    result = service.compute_slots(serviceCode, target_date)
    m = result.metadata
    return SlotsResponse(
        slots=[slot_to_response(s) for s in result.slots],
        byPeriod={
            period: [slot_to_response(s) for s in slots]
            for period, slots in result.by_period().items()
        },
        metadata=SlotsMetadataResponse(
            date=m.date,
            serviceCode=m.service_code,
            serviceName=m.service_name,
            durationMinutes=m.duration_minutes,
            totalMinutes=m.total_minutes,
            granularityMinutes=m.granularity_minutes,
            dailyLimitMinutes=m.daily_limit_minutes,
            committedMinutes=m.committed_minutes,
            remainingMinutes=m.remaining_minutes,
            totalSlots=m.total_slots,
            availableSlots=m.available_slots,
            bookedSlots=m.booked_slots,
        ),
    )


@router.get("/slots/month", response_model=MonthAvailabilityResponse)
async def get_month_availability(
    serviceCode: str = Query(...),
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Public calendar: available, full or closed for every day of a month"""
    result = service.month_status(serviceCode, year, month)
    return MonthAvailabilityResponse(
        serviceCode=result.service_code,
        year=result.year,
        month=result.month,
        availability={
            d.date.isoformat(): DayAvailabilityResponse(
                date=d.date,
                status=d.status.value,
                totalSlots=d.total_slots,
                availableSlots=d.available_slots,
                bookedSlots=d.booked_slots,
                availableStarts=d.available_starts,
            )
            for d in result.days
        },
        summary=MonthSummary(
            totalDays=len(result.days),
            availableDays=result.count(DayStatus.AVAILABLE),
            fullDays=result.count(DayStatus.FULL),
            closedDays=result.count(DayStatus.CLOSED),
        ),
    )


# ============================================================================
# MANUAL CLOSURES
# ============================================================================


@router.get("/closures", response_model=list[ClosureResponse])
async def list_closures(
    target_date: date = Query(..., alias="date"),
    serviceCode: Optional[str] = Query(None),
    service: ClosureService = Depends(get_closure_service),
):
    """Active closures for a date"""
    return [closure_to_response(c) for c in service.list_closures(target_date, serviceCode)]


@router.post("/closures", response_model=ClosureResponse, status_code=201)
async def create_closure(
    data: ClosureCreate,
    caller: Caller = Depends(get_current_caller),
    service: ClosureService = Depends(get_closure_service),
):
    """Block new bookings for a date, a period or a single slot"""
    closure = service.create_closure(
        caller,
        data.closureDate,
        period=data.period,
        slot_start=data.slotStart,
        service_code=data.serviceCode,
        reason=data.reason,
    )
    return closure_to_response(closure)


@router.post("/closures/check-conflict", response_model=ClosureConflictResponse)
async def check_closure_conflict(
    data: ClosureCreate,
    caller: Caller = Depends(get_current_caller),
    service: ClosureService = Depends(get_closure_service),
):
    """Existing reservations an intended closure would cover"""
    require_manage(caller)
    result = service.check_conflicts(
        data.closureDate,
        period=data.period,
        slot_start=data.slotStart,
        service_code=data.serviceCode,
    )
    return ClosureConflictResponse(
        hasConflict=result.has_conflict,
        conflictCount=len(result.conflicts),
        conflicts=[
            ClosureConflict(
                reservationId=r.id,
                serviceCode=r.service_code,
                patientName=r.patient_name,
                slotStart=r.slot_start,
                period=r.period,
                status=r.status,
            )
            for r in result.conflicts
        ],
        recommendation=result.recommendation,
    )


@router.delete("/closures/{closure_id}", response_model=ClosureResponse)
async def deactivate_closure(
    closure_id: int,
    caller: Caller = Depends(get_current_caller),
    service: ClosureService = Depends(get_closure_service),
):
    """Reopen a closure"""
    return closure_to_response(service.deactivate_closure(caller, closure_id))


# ============================================================================
# OPENING HOURS
# ============================================================================


@router.get("/opening-hours", response_model=OpeningHoursResponse)
async def get_opening_hours(
    serviceCode: Optional[str] = Query(None),
    service: HoursService = Depends(get_hours_service),
):
    """Effective opening windows per weekday, clinic-wide or for one service"""
    return OpeningHoursResponse(
        serviceCode=serviceCode,
        weekdays=[weekday_to_response(w) for w in service.weekly_hours(serviceCode)],
    )


@router.put("/opening-hours/{weekday}", response_model=WeekdayHoursResponse)
async def set_opening_hours(
    weekday: str,
    data: WeekdayHoursUpdate,
    caller: Caller = Depends(get_current_caller),
    service: HoursService = Depends(get_hours_service),
):
    """Replace a weekday's opening windows; only new bookings are affected"""
    hours = service.set_weekday_hours(
        caller,
        weekday,
        [{"period": w.period, "start_time": w.startTime, "end_time": w.endTime} for w in data.windows],
        service_code=data.serviceCode,
    )
    return weekday_to_response(hours)


@router.delete("/opening-hours/{weekday}", response_model=OpeningHoursClearResponse)
async def clear_opening_hours(
    weekday: str,
    serviceCode: Optional[str] = Query(None),
    caller: Caller = Depends(get_current_caller),
    service: HoursService = Depends(get_hours_service),
):
    """Remove a weekday override so the clinic-wide or configured hours apply again"""
    removed = service.clear_weekday_hours(caller, weekday, service_code=serviceCode)
    return OpeningHoursClearResponse(
        weekday=weekday.upper(), serviceCode=serviceCode, removedWindows=removed
    )
