import logging
from abc import ABC, abstractmethod

from app.models import Clinic, Visit
from app.utils.timezone import to_local

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Delivery of a reminder failed; nothing has been recorded."""


def build_reminder_message(clinic: Clinic, visit: Visit) -> str:
    pet = visit.pet
    pet_name = (pet.name if pet else None) or "[Pet Name Unavailable]"
    clinic_name = clinic.name or "[Clinic Name Unavailable]"
    clinic_phone = clinic.phone or "[Clinic Phone Unavailable]"
    visit_type = visit.visit_type or "health check"
    due = to_local(visit.next_reminder_date, clinic.timezone)
    # e.g. "Mar 10, 2024", on the clinic's calendar
    due_text = f"{due:%b} {due.day}, {due.year}" if due else "soon"
    return (
        f"Reminder from {clinic_name}: {pet_name}'s {visit_type} visit is due on {due_text}. "
        f"Please call us at {clinic_phone} to schedule."
    )


class ReminderDispatcher(ABC):
    """Delivers a single reminder. Implementations raise ``DispatchError`` on failure."""

    @abstractmethod
    def send(self, clinic: Clinic, visit: Visit) -> None:
        ...


class LoggingDispatcher(ReminderDispatcher):
    """Writes the rendered reminder to the log instead of a delivery channel."""

    def send(self, clinic: Clinic, visit: Visit) -> None:
        owner = visit.pet.owner if visit.pet else None
        if owner is None or not (owner.phone or "").strip():
            raise DispatchError(f"No contact phone for owner of visit {visit.id}")
        logger.info(
            "Reminder for visit %s (clinic %s) to %s: %s",
            visit.id,
            clinic.id,
            owner.phone,
            build_reminder_message(clinic, visit),
        )
