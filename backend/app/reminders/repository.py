from typing import List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import select, update, func, or_

from app.models import Clinic, Owner, Pet, Visit
from .filters import VisitFilter
from .eligibility import UsagePeriod


class ReminderStateConflict(Exception):
    """The sent flag and the usage counter could not be written together."""


def apply_visit_filter(stmt, visit_filter: VisitFilter):
    column = getattr(Visit, visit_filter.date_field)
    stmt = stmt.where(column >= visit_filter.window.start, column <= visit_filter.window.end)
    if visit_filter.visit_type is not None:
        stmt = stmt.where(Visit.visit_type == visit_filter.visit_type)
    if visit_filter.is_reminder_enabled is not None:
        stmt = stmt.where(Visit.is_reminder_enabled == visit_filter.is_reminder_enabled)
    if visit_filter.reminder_sent is not None:
        stmt = stmt.where(Visit.reminder_sent == visit_filter.reminder_sent)
    # Clinic ownership is transitive: visit -> pet -> owner -> clinic
    if visit_filter.clinic_id is not None or visit_filter.owner_allows_reminders is not None:
        stmt = stmt.join(Visit.pet).join(Pet.owner)
        if visit_filter.clinic_id is not None:
            stmt = stmt.where(Owner.clinic_id == visit_filter.clinic_id)
        if visit_filter.owner_allows_reminders is not None:
            stmt = stmt.where(Owner.allow_automated_reminders == visit_filter.owner_allows_reminders)
    return stmt


def list_visits(
    db: Session,
    visit_filter: VisitFilter,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Visit]:
    order_column = getattr(Visit, visit_filter.date_field)
    stmt = (
        apply_visit_filter(select(Visit), visit_filter)
        .options(joinedload(Visit.pet).joinedload(Pet.owner))
        .order_by(order_column.asc(), Visit.id.asc())
        .offset(offset)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).unique().scalars())


def count_visits(db: Session, visit_filter: VisitFilter) -> int:
    stmt = apply_visit_filter(select(func.count(Visit.id)).select_from(Visit), visit_filter)
    return db.execute(stmt).scalar_one()


def list_active_clinics(db: Session) -> List[Clinic]:
    stmt = (
        select(Clinic)
        .where(Clinic.is_active == True)  # noqa: E712
        .where(Clinic.can_send_reminders == True)  # noqa: E712
        .order_by(Clinic.id.asc())
    )
    return list(db.execute(stmt).scalars())


def get_clinic_visit(db: Session, clinic_id: int, visit_id: int) -> Optional[Visit]:
    stmt = (
        select(Visit)
        .join(Visit.pet)
        .join(Pet.owner)
        .where(Visit.id == visit_id)
        .where(Owner.clinic_id == clinic_id)
    )
    return db.execute(stmt).scalars().first()


def record_dispatch(db: Session, clinic: Clinic, visit: Visit, period: UsagePeriod) -> None:
    """Mark the visit's reminder as sent and count it against the clinic's quota.

    Both writes are committed together or rolled back together. The counter is
    reset first when it still belongs to an earlier period.
    """
    try:
        marked = db.execute(
            update(Visit)
            .where(Visit.id == visit.id)
            .where(Visit.reminder_sent == False)  # noqa: E712
            .values(reminder_sent=True)
        )
        if marked.rowcount != 1:
            raise ReminderStateConflict(f"Visit {visit.id} reminder already marked as sent")

        db.execute(
            update(Clinic)
            .where(Clinic.id == clinic.id)
            .where(or_(Clinic.reminder_usage_period.is_(None), Clinic.reminder_usage_period != period.key))
            .values(reminders_sent_this_period=0, reminder_usage_period=period.key)
        )
        counted = db.execute(
            update(Clinic)
            .where(Clinic.id == clinic.id)
            .where(Clinic.reminder_usage_period == period.key)
            .values(reminders_sent_this_period=Clinic.reminders_sent_this_period + 1)
        )
        if counted.rowcount != 1:
            raise ReminderStateConflict(f"Clinic {clinic.id} usage counter could not be incremented")

        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(visit)
    db.refresh(clinic)
