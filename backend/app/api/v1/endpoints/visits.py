from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import models
from app.api import deps
from app.reminders.eligibility import current_usage_period, is_eligible, reminder_state
from app.reminders.filters import build_due_today_filter, build_upcoming_filter
from app.reminders.repository import get_clinic_visit, list_visits
from app.schemas.visit import ReminderEligibilityResponse, VisitResponse
from app.utils.timezone import ClinicTimezone, resolve_day_window, utc_now

router = APIRouter()


@router.get("/due-today", response_model=List[VisitResponse])
def due_today(
    db: Session = Depends(deps.get_db),
    clinic: models.Clinic = Depends(deps.get_current_clinic),
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> Any:
    """Visits whose visit date falls on the clinic's current calendar day."""
    return list_visits(db, build_due_today_filter(clinic.timezone, clinic_id=clinic.id), limit=limit)


@router.get("/upcoming", response_model=List[VisitResponse])
def upcoming(
    db: Session = Depends(deps.get_db),
    clinic: models.Clinic = Depends(deps.get_current_clinic),
    days_ahead: int = Query(30, ge=0, le=366),
    visit_type: Optional[str] = None,
    reminder_enabled: Optional[bool] = None,
    limit: int = Query(10, ge=1, le=100),
) -> Any:
    try:
        visit_filter = build_upcoming_filter(
            clinic.timezone,
            days_ahead,
            visit_type=visit_type,
            reminder_enabled=reminder_enabled,
            clinic_id=clinic.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return list_visits(db, visit_filter, limit=limit)


@router.get("/{visit_id}/reminder-eligibility", response_model=ReminderEligibilityResponse)
def reminder_eligibility(
    visit_id: int,
    db: Session = Depends(deps.get_db),
    clinic: models.Clinic = Depends(deps.get_current_clinic),
) -> Any:
    visit = get_clinic_visit(db, clinic.id, visit_id)
    if visit is None:
        raise HTTPException(status_code=404, detail="Visit not found")

    now = utc_now()
    tz = ClinicTimezone.parse(clinic.timezone)
    period = current_usage_period(tz, now)
    result = is_eligible(clinic, visit, period, now, window=resolve_day_window(tz, now))
    return ReminderEligibilityResponse(
        visit_id=visit.id,
        eligible=result.eligible,
        reason=result.reason.value if result.reason else None,
        state=reminder_state(visit).value,
        period=period.key,
    )
