"""Catalog service - Business logic for services, daily limits and usage"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service, ServiceReservationLimit
from ...shared.clock import Clock, system_clock
from ...shared.errors import ImmutableFieldError, InvalidServiceConfigError, ServiceNotFoundError
from ..reservations.repository import ReservationRepository
from .cascade_service import CascadeEffect, CascadeService, check_duration
from .repository import ServiceRepository
from .schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)

MAX_BUFFER_MINUTES = 60
MAX_USAGE_RANGE_DAYS = 92


@dataclass
class DailyUsage:
    date: date
    committed_minutes: int
    remaining_minutes: Optional[int]
    utilization_percent: Optional[float]


def check_buffer(buffer_minutes: int) -> None:
    if not 0 <= buffer_minutes <= MAX_BUFFER_MINUTES:
        raise InvalidServiceConfigError(
            f"Buffer must be between 0 and {MAX_BUFFER_MINUTES} minutes",
            field="buffer_minutes",
            value=buffer_minutes,
        )


class CatalogService:
    """Service layer for catalog administration"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.repo = ServiceRepository()
        self.reservations = ReservationRepository()

    def get_service(self, code: str) -> Service:
        service = self.repo.get_by_code(self.db, code)
        if not service:
            raise ServiceNotFoundError(f"Service not found: {code}", service_code=code)
        return service

    def list_services(self, active_only: bool = False) -> list[Service]:
        return self.repo.list_services(self.db, active_only=active_only)

    def create_service(self, data: ServiceCreate) -> Service:
        """Create a service (and its daily limit when one is given)"""
        check_duration(data.durationMinutes)
        check_buffer(data.bufferMinutes)
        if data.dailyLimitMinutes is not None and data.dailyLimitMinutes <= 0:
            raise InvalidServiceConfigError(
                "Daily limit must be a positive number of minutes", field="daily_limit_minutes"
            )

        if self.repo.get_by_code(self.db, data.code):
            raise InvalidServiceConfigError(
                f"Service code already exists: {data.code}", field="code", value=data.code
            )

        logger.info(f"📥 Creating service {data.code} ({data.durationMinutes}+{data.bufferMinutes} min)")
        service = self.repo.create_service(
            self.db,
            code=data.code,
            name=data.name,
            description=data.description,
            category=data.category,
            duration_minutes=data.durationMinutes,
            buffer_minutes=data.bufferMinutes,
            is_active=data.isActive,
            display_order=data.displayOrder,
        )

        if data.dailyLimitMinutes is not None:
            self.repo.upsert_limit(self.db, service.id, data.dailyLimitMinutes)
            self.db.refresh(service)

        return service

    def update_service(
        self, code: str, data: ServiceUpdate
    ) -> tuple[Service, Optional[CascadeEffect]]:
        """
        Update a service. The cascade effect is computed whenever the duration
        changes and returned next to the updated service; it never touches
        existing reservations.
        """
        service = self.get_service(code)

        if data.code is not None and data.code != service.code:
            raise ImmutableFieldError(
                "Service code cannot be changed once created",
                field="code",
                current_value=service.code,
            )
        if data.durationMinutes is not None:
            check_duration(data.durationMinutes)
        if data.bufferMinutes is not None:
            check_buffer(data.bufferMinutes)

        cascade = None
        if data.durationMinutes is not None and data.durationMinutes != service.duration_minutes:
            cascade = CascadeService(self.db, clock=self.clock).calculate_cascade(
                service.code, service.duration_minutes, data.durationMinutes
            )

        updates = {
            "name": data.name,
            "description": data.description,
            "category": data.category,
            "duration_minutes": data.durationMinutes,
            "buffer_minutes": data.bufferMinutes,
            "is_active": data.isActive,
            "display_order": data.displayOrder,
        }
        service = self.repo.update_service(self.db, service, **updates)
        logger.info(f"✅ Service {service.code} updated")
        return service, cascade

    def deactivate_service(self, code: str) -> Service:
        """Soft delete; existing reservations are kept and still resolve"""
        service = self.get_service(code)
        service = self.repo.update_service(self.db, service, is_active=False)
        logger.info(f"🗑️ Service {service.code} deactivated")
        return service

    def upsert_daily_limit(
        self, code: str, daily_limit_minutes: int, is_active: bool = True
    ) -> ServiceReservationLimit:
        if daily_limit_minutes <= 0:
            raise InvalidServiceConfigError(
                "Daily limit must be a positive number of minutes",
                field="daily_limit_minutes",
                value=daily_limit_minutes,
            )
        service = self.get_service(code)
        limit = self.repo.upsert_limit(self.db, service.id, daily_limit_minutes, is_active=is_active)
        logger.info(
            f"📊 Daily limit for {service.code} set to {daily_limit_minutes} min (active={is_active})"
        )
        return limit

    def set_daily_limit_active(self, code: str, is_active: bool) -> Optional[ServiceReservationLimit]:
        """Toggle an existing limit; a service without one stays unlimited"""
        service = self.get_service(code)
        limit = self.repo.get_limit(self.db, service.id)
        if not limit:
            return None
        return self.repo.upsert_limit(self.db, service.id, limit.daily_limit_minutes, is_active=is_active)

    def daily_usage(self, code: str, start_date: date, end_date: date) -> tuple[Optional[int], list[DailyUsage]]:
        """Committed minutes per date against the active limit, for a calendar view"""
        if end_date < start_date:
            raise InvalidServiceConfigError("end_date must not be before start_date")
        if (end_date - start_date).days >= MAX_USAGE_RANGE_DAYS:
            raise InvalidServiceConfigError(f"Usage range is limited to {MAX_USAGE_RANGE_DAYS} days")

        service = self.get_service(code)
        limit = self.repo.get_active_limit_minutes(self.db, service.id)
        committed = self.reservations.committed_minutes_by_date(self.db, service.id, start_date, end_date)

        days = []
        current = start_date
        while current <= end_date:
            used = committed.get(current, 0)
            days.append(
                DailyUsage(
                    date=current,
                    committed_minutes=used,
                    remaining_minutes=max(0, limit - used) if limit is not None else None,
                    utilization_percent=round(used / limit * 100, 1) if limit else None,
                )
            )
            current += timedelta(days=1)
        return limit, days
