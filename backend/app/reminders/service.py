"""
Reminder scan: select today's candidates per clinic, apply the eligibility
rules, hand eligible visits to the dispatcher and record each successful
send atomically.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.models import Clinic, Visit
from app.utils.timezone import ClinicTimezone, resolve_day_window, to_utc_aware, utc_now
from .config import settings
from .dispatcher import DispatchError, LoggingDispatcher, ReminderDispatcher
from .eligibility import current_usage_period, is_eligible
from .filters import build_reminder_candidates_filter
from .metrics import (
    reminders_denied_total,
    reminders_dispatch_failed_total,
    reminders_dispatch_success_total,
    reminders_eligible_total,
    reminders_record_conflicts_total,
    scheduler_scans_total,
)
from .repository import ReminderStateConflict, list_active_clinics, list_visits, record_dispatch

logger = logging.getLogger(__name__)


@dataclass
class ScanSummary:
    clinics: int = 0
    candidates: int = 0
    dispatched: int = 0
    failed: int = 0
    conflicts: int = 0
    denied: Counter = field(default_factory=Counter)

    def merge(self, other: "ScanSummary") -> None:
        self.clinics += other.clinics
        self.candidates += other.candidates
        self.dispatched += other.dispatched
        self.failed += other.failed
        self.conflicts += other.conflicts
        self.denied.update(other.denied)

    def as_dict(self) -> Dict[str, object]:
        return {
            "clinics": self.clinics,
            "candidates": self.candidates,
            "dispatched": self.dispatched,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "denied": dict(self.denied),
        }


class ReminderService:
    def __init__(self, db: Session, dispatcher: Optional[ReminderDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher or LoggingDispatcher()

    def process_clinic(self, clinic: Clinic, now: Optional[datetime] = None) -> ScanSummary:
        now = to_utc_aware(now) if now is not None else utc_now()
        summary = ScanSummary(clinics=1)
        tz = ClinicTimezone.parse(clinic.timezone)
        window = resolve_day_window(tz, now)
        period = current_usage_period(tz, now)

        candidates = list_visits(
            self.db,
            build_reminder_candidates_filter(tz, now, clinic_id=clinic.id),
            limit=settings.SCAN_BATCH_SIZE,
        )
        summary.candidates = len(candidates)

        for visit in candidates:
            # Re-checked per visit: the usage counter moves as reminders go out
            result = is_eligible(clinic, visit, period, now, window=window)
            if not result:
                summary.denied[result.reason.value] += 1
                reminders_denied_total.labels(reason=result.reason.value).inc()
                continue
            reminders_eligible_total.inc()

            try:
                self.dispatcher.send(clinic, visit)
            except DispatchError as e:
                # Visit stays scheduled; later scans retry it only while it is still due today
                summary.failed += 1
                reminders_dispatch_failed_total.inc()
                logger.warning("Reminder dispatch failed for visit %s: %s", visit.id, e)
                continue
            except Exception:
                summary.failed += 1
                reminders_dispatch_failed_total.inc()
                logger.exception("Unexpected error dispatching reminder for visit %s", visit.id)
                continue

            try:
                record_dispatch(self.db, clinic, visit, period)
            except ReminderStateConflict as e:
                summary.conflicts += 1
                reminders_record_conflicts_total.inc()
                logger.error("Reminder for visit %s sent but not recorded: %s", visit.id, e)
                continue

            summary.dispatched += 1
            reminders_dispatch_success_total.inc()

        logger.info(
            "Clinic %s reminder scan (%s, period %s): %s",
            clinic.id,
            tz.name,
            period.key,
            summary.as_dict(),
        )
        return summary

    def scan_and_dispatch(self, now: Optional[datetime] = None) -> ScanSummary:
        now = to_utc_aware(now) if now is not None else utc_now()
        scheduler_scans_total.inc()
        total = ScanSummary()
        for clinic in list_active_clinics(self.db):
            total.merge(self.process_clinic(clinic, now))
        logger.info("Reminder scan finished: %s", total.as_dict())
        return total
