"""Schedule repository - opening-hour overrides and manual closures"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import ClinicTimeSlot, ManualTimeClosure
from .time_calculator import Period, Window, sort_windows, to_hhmm, to_minutes


class ScheduleRepository:
    """Repository for clinic hours and closures"""

    @staticmethod
    def get_window_overrides(
        db: Session, service_id: Optional[int], weekday: str
    ) -> Optional[list[Window]]:
        """
        Opening windows stored for a weekday, or None when the configured
        defaults apply. Service-specific rows win over global rows.
        """
        rows = (
            db.query(ClinicTimeSlot)
            .filter(
                ClinicTimeSlot.day_of_week == weekday,
                or_(ClinicTimeSlot.service_id.is_(None), ClinicTimeSlot.service_id == service_id),
            )
            .all()
        )
        if not rows:
            return None

        specific = [r for r in rows if r.service_id == service_id]
        chosen = specific or rows
        return sort_windows(
            Window(Period(r.period), to_minutes(r.start_time), to_minutes(r.end_time)) for r in chosen
        )

    @staticmethod
    def get_closures_for_day(
        db: Session, target_date: date, service_id: Optional[int] = None
    ) -> list[ManualTimeClosure]:
        """Active closures for a date that apply to the service (or to every service)"""
        query = db.query(ManualTimeClosure).filter(
            ManualTimeClosure.closure_date == target_date,
            ManualTimeClosure.is_active.is_(True),
        )
        if service_id is not None:
            query = query.filter(
                or_(ManualTimeClosure.service_id.is_(None), ManualTimeClosure.service_id == service_id)
            )
        return query.order_by(ManualTimeClosure.id).all()

    @staticmethod
    def get_closure(db: Session, closure_id: int) -> Optional[ManualTimeClosure]:
        return db.query(ManualTimeClosure).filter(ManualTimeClosure.id == closure_id).first()

    @staticmethod
    def create_closure(db: Session, **closure_data) -> ManualTimeClosure:
        closure = ManualTimeClosure(**closure_data)
        db.add(closure)
        db.commit()
        db.refresh(closure)
        return closure

    @staticmethod
    def get_overrides_in_scope(db: Session, service_id: Optional[int]) -> list[ClinicTimeSlot]:
        """Stored windows of exactly one scope: a service, or clinic-wide when service_id is None"""
        query = db.query(ClinicTimeSlot)
        if service_id is None:
            query = query.filter(ClinicTimeSlot.service_id.is_(None))
        else:
            query = query.filter(ClinicTimeSlot.service_id == service_id)
        return query.order_by(ClinicTimeSlot.day_of_week, ClinicTimeSlot.start_time).all()

    @staticmethod
    def replace_window_overrides(
        db: Session, weekday: str, service_id: Optional[int], windows: list[Window]
    ) -> list[ClinicTimeSlot]:
        """Swap one weekday's windows for a scope in a single transaction"""
        ScheduleRepository._scope_query(db, weekday, service_id).delete(synchronize_session="fetch")
        rows = [
            ClinicTimeSlot(
                day_of_week=weekday,
                period=w.period.value,
                start_time=to_hhmm(w.open),
                end_time=to_hhmm(w.close),
                service_id=service_id,
            )
            for w in windows
        ]
        db.add_all(rows)
        db.commit()
        for row in rows:
            db.refresh(row)
        return rows

    @staticmethod
    def delete_window_overrides(db: Session, weekday: str, service_id: Optional[int]) -> int:
        deleted = ScheduleRepository._scope_query(db, weekday, service_id).delete(
            synchronize_session="fetch"
        )
        db.commit()
        return deleted

    @staticmethod
    def _scope_query(db: Session, weekday: str, service_id: Optional[int]):
        query = db.query(ClinicTimeSlot).filter(ClinicTimeSlot.day_of_week == weekday)
        if service_id is None:
            return query.filter(ClinicTimeSlot.service_id.is_(None))
        return query.filter(ClinicTimeSlot.service_id == service_id)
