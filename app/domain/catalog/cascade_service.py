"""
Cascade Effect Calculator

Advisory preview of what a service duration change does to daily booking
capacity and to already-booked reservations. Nothing here writes to the store;
existing reservations keep the duration snapshot they were admitted with.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from ...shared.clock import Clock, system_clock
from ...shared.errors import InvalidServiceConfigError, ServiceNotFoundError
from ..reservations.repository import ReservationRepository
from .repository import ServiceRepository

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 10
MAX_DURATION_MINUTES = 480


@dataclass
class CascadeEffect:
    service_code: str
    old_duration_minutes: int
    new_duration_minutes: int
    daily_limit_minutes: Optional[int] = None
    # Format: {"before": int, "after": int, "direction": "decrease" | "increase"}
    max_bookings_changed: Optional[dict] = None
    affected_reservations: int = 0
    warnings: list[str] = field(default_factory=list)
    computed: bool = True


def check_duration(duration_minutes: int, field_name: str = "duration_minutes") -> None:
    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise InvalidServiceConfigError(
            f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
            field=field_name,
            value=duration_minutes,
        )


class CascadeService:
    """Computes the cascade effect of a duration change"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.services = ServiceRepository()
        self.reservations = ReservationRepository()

    def calculate_cascade(
        self, service_code: str, old_duration: int, new_duration: int
    ) -> CascadeEffect:
        """
        Report how a duration change affects daily capacity and future bookings.

        Args:
            service_code: catalog code of the service being edited
            old_duration: duration currently in the catalog
            new_duration: proposed duration

        Returns:
            CascadeEffect, always with computed=True; warnings may be empty
        """
        check_duration(old_duration, "old_duration_minutes")
        check_duration(new_duration, "new_duration_minutes")

        service = self.services.get_by_code(self.db, service_code)
        if not service:
            raise ServiceNotFoundError(f"Service not found: {service_code}", service_code=service_code)

        effect = CascadeEffect(
            service_code=service.code,
            old_duration_minutes=old_duration,
            new_duration_minutes=new_duration,
        )

        limit = self.services.get_active_limit_minutes(self.db, service.id)
        effect.daily_limit_minutes = limit
        if limit is not None:
            before = limit // old_duration
            after = limit // new_duration
            if before != after:
                effect.max_bookings_changed = {
                    "before": before,
                    "after": after,
                    "direction": "decrease" if after < before else "increase",
                }
                effect.warnings.append(
                    f"Maximum daily bookings will change from {before} to {after}."
                )

        today = self.clock().date()
        upcoming = self.reservations.count_future_live(self.db, service.id, today)
        effect.affected_reservations = upcoming
        if upcoming > 0:
            effect.warnings.append(
                f"There are {upcoming} upcoming reservations for this service. "
                f"They keep their booked duration; review them before changing it."
            )

        if effect.warnings:
            logger.warning(
                f"⚠️ Cascade for {service.code} ({old_duration}→{new_duration} min): "
                f"{' | '.join(effect.warnings)}"
            )
        return effect
