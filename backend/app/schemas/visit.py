from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class PetSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    species: Optional[str] = None
    breed: Optional[str] = None


class VisitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pet_id: int
    visit_date: datetime
    visit_type: str
    notes: Optional[str] = None
    next_reminder_date: Optional[datetime] = None
    is_reminder_enabled: bool
    reminder_sent: bool
    pet: Optional[PetSummary] = None


class ReminderEligibilityResponse(BaseModel):
    visit_id: int
    eligible: bool
    reason: Optional[str] = None
    state: str
    period: str
