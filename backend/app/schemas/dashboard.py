from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ReminderUsage(BaseModel):
    used: int
    limit: int
    period: str


class SubscriptionStatus(BaseModel):
    """Informational only; gating happens in the eligibility rules."""
    active: bool
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


class DashboardStats(BaseModel):
    """Clinic dashboard counts.

    Platform admins without a clinic get an admin view carrying only the
    platform-wide owner and pet counts.
    """
    total_owners: int
    total_pets: int
    is_admin_view: bool = False
    clinic_id: Optional[int] = None
    timezone: Optional[str] = None
    due_today: Optional[int] = None
    upcoming_vaccinations: Optional[int] = None
    reminder_usage: Optional[ReminderUsage] = None
    subscription: Optional[SubscriptionStatus] = None
