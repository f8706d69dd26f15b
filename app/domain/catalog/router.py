"""Catalog router - FastAPI endpoints for services, daily limits and cascade previews"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Caller, get_current_caller, require_manage
from ...database import get_db
from ...models import Service
from ...shared.clock import Clock, get_clock
from .cascade_service import CascadeEffect, CascadeService
from .schemas import (
    CascadeEffectResponse,
    CascadePreviewRequest,
    DailyLimitRequest,
    DailyLimitResponse,
    DailyLimitToggle,
    DailyUsageDay,
    DailyUsageResponse,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    ServiceUpdateResponse,
)
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


def get_catalog_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db, clock=clock)


def get_cascade_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> CascadeService:
    """Dependency injection for CascadeService"""
    return CascadeService(db, clock=clock)


def to_response(s: Service) -> ServiceResponse:
    limit = s.daily_limit
    return ServiceResponse(
        id=s.id,
        code=s.code,
        name=s.name,
        description=s.description,
        category=s.category,
        durationMinutes=s.duration_minutes,
        bufferMinutes=s.buffer_minutes,
        totalMinutes=s.total_minutes,
        isActive=s.is_active,
        displayOrder=s.display_order,
        dailyLimitMinutes=limit.daily_limit_minutes if limit and limit.is_active else None,
        createdAt=s.created_at,
        updatedAt=s.updated_at,
    )


def cascade_to_response(effect: CascadeEffect) -> CascadeEffectResponse:
    return CascadeEffectResponse(
        serviceCode=effect.service_code,
        oldDurationMinutes=effect.old_duration_minutes,
        newDurationMinutes=effect.new_duration_minutes,
        dailyLimitMinutes=effect.daily_limit_minutes,
        maxBookingsChanged=effect.max_bookings_changed,
        affectedReservations=effect.affected_reservations,
        warnings=effect.warnings,
        computed=effect.computed,
    )


# ============================================================================
# CATALOG
# ============================================================================


@router.get("", response_model=list[ServiceResponse])
async def list_services(
    includeInactive: bool = Query(False),
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Bookable services; staff may include inactive ones"""
    active_only = not (includeInactive and caller.can_manage)
    return [to_response(s) for s in service.list_services(active_only=active_only)]


@router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Create a service"""
    require_manage(caller)
    return to_response(service.create_service(data))


@router.patch("/{code}", response_model=ServiceUpdateResponse)
async def update_service(
    code: str,
    data: ServiceUpdate,
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Update a service; a duration change returns its cascade effect"""
    require_manage(caller)
    updated, cascade = service.update_service(code, data)
    return ServiceUpdateResponse(
        service=to_response(updated),
        cascade=cascade_to_response(cascade) if cascade else None,
    )


@router.delete("/{code}", response_model=ServiceResponse)
async def deactivate_service(
    code: str,
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Soft delete a service"""
    require_manage(caller)
    return to_response(service.deactivate_service(code))


@router.post("/{code}/cascade-preview", response_model=CascadeEffectResponse)
async def cascade_preview(
    code: str,
    data: CascadePreviewRequest,
    caller: Caller = Depends(get_current_caller),
    catalog: CatalogService = Depends(get_catalog_service),
    cascade: CascadeService = Depends(get_cascade_service),
):
    """Preview the effect of a duration change without saving it"""
    require_manage(caller)
    old_duration = data.oldDurationMinutes or catalog.get_service(code).duration_minutes
    effect = cascade.calculate_cascade(code, old_duration, data.newDurationMinutes)
    return cascade_to_response(effect)


# ============================================================================
# DAILY LIMITS
# ============================================================================


@router.put("/{code}/daily-limit", response_model=DailyLimitResponse)
async def put_daily_limit(
    code: str,
    data: DailyLimitRequest,
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Create or replace the daily capacity limit of a service"""
    require_manage(caller)
    limit = service.upsert_daily_limit(code, data.dailyLimitMinutes, is_active=data.isActive)
    return DailyLimitResponse(
        serviceCode=code, dailyLimitMinutes=limit.daily_limit_minutes, isActive=limit.is_active
    )


@router.get("/{code}/daily-usage", response_model=DailyUsageResponse)
async def get_daily_usage(
    code: str,
    startDate: date = Query(...),
    endDate: Optional[date] = Query(None),
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Committed minutes per day against the daily limit"""
    require_manage(caller)
    limit, days = service.daily_usage(code, startDate, endDate or startDate)
    return DailyUsageResponse(
        serviceCode=code,
        dailyLimitMinutes=limit,
        days=[
            DailyUsageDay(
                date=d.date,
                committedMinutes=d.committed_minutes,
                remainingMinutes=d.remaining_minutes,
                utilizationPercent=d.utilization_percent,
            )
            for d in days
        ],
    )


@router.patch("/{code}/daily-limit", response_model=Optional[DailyLimitResponse])
async def toggle_daily_limit(
    code: str,
    data: DailyLimitToggle,
    caller: Caller = Depends(get_current_caller),
    service: CatalogService = Depends(get_catalog_service),
):
    """Enable or disable an existing limit; returns null when none is configured"""
    require_manage(caller)
    limit = service.set_daily_limit_active(code, data.isActive)
    if not limit:
        return None
    return DailyLimitResponse(
        serviceCode=code, dailyLimitMinutes=limit.daily_limit_minutes, isActive=limit.is_active
    )
