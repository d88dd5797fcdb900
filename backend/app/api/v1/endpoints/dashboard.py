from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app import models
from app.api import deps
from app.reminders.config import settings as reminder_settings
from app.reminders.eligibility import current_usage_period, subscription_is_active, usage_in_period
from app.reminders.filters import build_due_today_filter, build_upcoming_filter
from app.reminders.repository import count_visits
from app.schemas.dashboard import DashboardStats, ReminderUsage, SubscriptionStatus
from app.utils.timezone import ClinicTimezone, to_utc_aware, utc_now

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
def get_stats(
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Counts for the clinic dashboard, with "today" and the upcoming horizon
    taken on the clinic's own calendar.
    """
    if current_user.is_admin and current_user.clinic_id is None:
        return DashboardStats(
            total_owners=db.execute(select(func.count(models.Owner.id))).scalar_one(),
            total_pets=db.execute(select(func.count(models.Pet.id))).scalar_one(),
            is_admin_view=True,
        )

    clinic = deps.get_user_clinic(db, current_user)
    now = utc_now()
    tz = ClinicTimezone.parse(clinic.timezone)

    total_owners = db.execute(
        select(func.count(models.Owner.id)).where(models.Owner.clinic_id == clinic.id)
    ).scalar_one()
    total_pets = db.execute(
        select(func.count(models.Pet.id))
        .join(models.Pet.owner)
        .where(models.Owner.clinic_id == clinic.id)
    ).scalar_one()

    due_today = count_visits(db, build_due_today_filter(tz, now, clinic_id=clinic.id))
    upcoming_vaccinations = count_visits(
        db,
        build_upcoming_filter(
            tz,
            reminder_settings.UPCOMING_DAYS_AHEAD,
            visit_type=reminder_settings.UPCOMING_VISIT_TYPE,
            now=now,
            clinic_id=clinic.id,
        ),
    )

    period = current_usage_period(tz, now)
    expires_at = to_utc_aware(clinic.subscription_end_date)
    days_remaining = max(0, (expires_at - now).days) if expires_at is not None else None

    return DashboardStats(
        clinic_id=clinic.id,
        timezone=tz.name,
        total_owners=total_owners,
        total_pets=total_pets,
        due_today=due_today,
        upcoming_vaccinations=upcoming_vaccinations,
        reminder_usage=ReminderUsage(
            used=usage_in_period(clinic, period),
            limit=clinic.reminder_monthly_limit or 0,
            period=period.key,
        ),
        subscription=SubscriptionStatus(
            active=subscription_is_active(clinic, now),
            expires_at=expires_at,
            days_remaining=days_remaining,
        ),
    )
