"""Reservation repository - Database operations for reservations"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Reservation
from .state_machine import LIVE_STATUSES


class ReservationRepository:
    """Repository for reservation database operations"""

    @staticmethod
    def get_by_ref(db: Session, reservation_ref: str) -> Optional[Reservation]:
        """Look up by numeric id or by public UUID"""
        if reservation_ref.isdigit():
            return db.query(Reservation).filter(Reservation.id == int(reservation_ref)).first()
        return db.query(Reservation).filter(Reservation.public_id == reservation_ref).first()

    @staticmethod
    def get_for_update(db: Session, reservation_id: int) -> Optional[Reservation]:
        """Re-read a row from the store, overwriting any copy held by the session.

        Row-locked on PostgreSQL; SQLite ignores FOR UPDATE.
        """
        return (
            db.query(Reservation)
            .filter(Reservation.id == reservation_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_live_for_day(
        db: Session,
        service_id: int,
        target_date: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> list[Reservation]:
        """PENDING/CONFIRMED reservations of one service on one date, read from committed rows"""
        query = db.query(Reservation).filter(
            Reservation.service_id == service_id,
            Reservation.date == target_date,
            Reservation.status.in_(LIVE_STATUSES),
        )
        if exclude_reservation_id is not None:
            query = query.filter(Reservation.id != exclude_reservation_id)
        return query.order_by(Reservation.slot_start).all()

    @staticmethod
    def get_live_on_date(
        db: Session, target_date: date, service_id: Optional[int] = None
    ) -> list[Reservation]:
        """PENDING/CONFIRMED reservations on a date, optionally for one service"""
        query = db.query(Reservation).filter(
            Reservation.date == target_date,
            Reservation.status.in_(LIVE_STATUSES),
        )
        if service_id is not None:
            query = query.filter(Reservation.service_id == service_id)
        return query.order_by(Reservation.slot_start).all()

    @staticmethod
    def count_future_live(db: Session, service_id: int, today: date) -> int:
        return (
            db.query(func.count(Reservation.id))
            .filter(
                Reservation.service_id == service_id,
                Reservation.date >= today,
                Reservation.status.in_(LIVE_STATUSES),
            )
            .scalar()
            or 0
        )

    @staticmethod
    def committed_minutes_by_date(
        db: Session, service_id: int, start_date: date, end_date: date
    ) -> dict[date, int]:
        """Sum of booked duration (buffer excluded) per date over live reservations"""
        rows = (
            db.query(Reservation.date, func.sum(Reservation.duration_minutes))
            .filter(
                Reservation.service_id == service_id,
                Reservation.date >= start_date,
                Reservation.date <= end_date,
                Reservation.status.in_(LIVE_STATUSES),
            )
            .group_by(Reservation.date)
            .all()
        )
        return {row[0]: int(row[1] or 0) for row in rows}

    @staticmethod
    def search_reservations(
        db: Session,
        target_date: Optional[date] = None,
        status: Optional[str] = None,
        service_code: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Reservation], int]:
        """Filter reservations for the staff list view, returns (page, total)"""
        query = db.query(Reservation)

        if target_date:
            query = query.filter(Reservation.date == target_date)

        if status and status != "all":
            query = query.filter(Reservation.status == status)

        if service_code and service_code != "all":
            query = query.filter(Reservation.service_code == service_code)

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                (Reservation.patient_name.ilike(search_term))
                | (Reservation.patient_phone.ilike(search_term))
                | (Reservation.patient_email.ilike(search_term))
            )

        total = query.count()
        page = (
            query.order_by(Reservation.date, Reservation.slot_start)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return page, total

    @staticmethod
    def find_by_phone(db: Session, phone: str, since: date, limit: int) -> list[Reservation]:
        """Most recent reservations under one normalized phone, any status"""
        return (
            db.query(Reservation)
            .filter(Reservation.patient_phone == phone, Reservation.date >= since)
            .order_by(Reservation.date.desc(), Reservation.slot_start.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def add(db: Session, reservation: Reservation) -> Reservation:
        """Stage a new reservation; the caller owns the transaction"""
        db.add(reservation)
        db.flush()
        return reservation
