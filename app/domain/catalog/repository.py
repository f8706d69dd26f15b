"""Catalog repository - Database operations for services and daily limits"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service, ServiceReservationLimit


class ServiceRepository:
    """Repository for service catalog database operations"""

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Service]:
        return db.query(Service).filter(Service.code == code).first()

    @staticmethod
    def list_services(db: Session, active_only: bool = False) -> list[Service]:
        query = db.query(Service)
        if active_only:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.display_order, Service.name).all()

    @staticmethod
    def create_service(db: Session, **service_data) -> Service:
        service = Service(**service_data)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def update_service(db: Session, service: Service, **updates) -> Service:
        """Update a service with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(service, key):
                setattr(service, key, value)

        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def get_limit(db: Session, service_id: int) -> Optional[ServiceReservationLimit]:
        return (
            db.query(ServiceReservationLimit)
            .filter(ServiceReservationLimit.service_id == service_id)
            .first()
        )

    @staticmethod
    def get_active_limit_minutes(db: Session, service_id: int) -> Optional[int]:
        """Daily limit in minutes, or None when the service has unlimited capacity"""
        limit = ServiceRepository.get_limit(db, service_id)
        if not limit or not limit.is_active or not limit.daily_limit_minutes:
            return None
        return limit.daily_limit_minutes

    @staticmethod
    def upsert_limit(
        db: Session, service_id: int, daily_limit_minutes: int, is_active: bool = True
    ) -> ServiceReservationLimit:
        limit = ServiceRepository.get_limit(db, service_id)
        if limit:
            limit.daily_limit_minutes = daily_limit_minutes
            limit.is_active = is_active
        else:
            limit = ServiceReservationLimit(
                service_id=service_id,
                daily_limit_minutes=daily_limit_minutes,
                is_active=is_active,
            )
            db.add(limit)

        db.commit()
        db.refresh(limit)
        return limit
