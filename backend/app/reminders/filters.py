"""
Declarative visit filters built from clinic-local time windows.

Nothing here touches the database: a ``VisitFilter`` is a description that
``app.reminders.repository.apply_visit_filter`` turns into a SQL query.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from app.utils.timezone import TimeWindow, TimezoneLike, resolve_day_window, resolve_horizon_window

VISIT_DATE = "visit_date"
NEXT_REMINDER_DATE = "next_reminder_date"


@dataclass(frozen=True)
class VisitFilter:
    window: TimeWindow
    date_field: str = VISIT_DATE
    clinic_id: Optional[int] = None
    visit_type: Optional[str] = None
    is_reminder_enabled: Optional[bool] = None
    reminder_sent: Optional[bool] = None
    owner_allows_reminders: Optional[bool] = None

    def __post_init__(self):
        if self.date_field not in (VISIT_DATE, NEXT_REMINDER_DATE):
            raise ValueError(f"Unsupported date field: {self.date_field}")

    def as_dict(self) -> Dict[str, Any]:
        """Plain representation, omitting constraints that are not applied."""
        data: Dict[str, Any] = {
            self.date_field: {"gte": self.window.start, "lte": self.window.end},
        }
        optional = {
            "clinic_id": self.clinic_id,
            "visit_type": self.visit_type,
            "is_reminder_enabled": self.is_reminder_enabled,
            "reminder_sent": self.reminder_sent,
            "owner_allows_reminders": self.owner_allows_reminders,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


def build_due_today_filter(
    clinic_timezone: TimezoneLike,
    now: Optional[datetime] = None,
    clinic_id: Optional[int] = None,
) -> VisitFilter:
    # Any visit scheduled today counts, reminder-related or not
    return VisitFilter(window=resolve_day_window(clinic_timezone, now), clinic_id=clinic_id)


def build_upcoming_filter(
    clinic_timezone: TimezoneLike,
    days_ahead: int,
    visit_type: Optional[str] = None,
    reminder_enabled: Optional[bool] = None,
    now: Optional[datetime] = None,
    clinic_id: Optional[int] = None,
) -> VisitFilter:
    return VisitFilter(
        window=resolve_horizon_window(clinic_timezone, now, days_ahead),
        clinic_id=clinic_id,
        visit_type=visit_type,
        is_reminder_enabled=reminder_enabled,
    )


def build_reminder_candidates_filter(
    clinic_timezone: TimezoneLike,
    now: Optional[datetime] = None,
    clinic_id: Optional[int] = None,
) -> VisitFilter:
    """Scheduled, unsent reminders due today whose owner accepts automated reminders."""
    return VisitFilter(
        window=resolve_day_window(clinic_timezone, now),
        date_field=NEXT_REMINDER_DATE,
        clinic_id=clinic_id,
        is_reminder_enabled=True,
        reminder_sent=False,
        owner_allows_reminders=True,
    )
