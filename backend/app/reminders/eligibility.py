"""
Reminder eligibility rules.

``is_eligible`` is a pure function of the clinic, the visit, the active usage
period and the current instant. It reports the first failing rule; the caller
decides whether to dispatch and, on success, records the send together with
the usage increment (see ``repository.record_dispatch``).
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from app.utils.timezone import (
    TimeWindow,
    TimezoneLike,
    as_clinic_timezone,
    resolve_day_window,
    to_utc_aware,
    utc_now,
)


class DeniedReason(str, Enum):
    SUBSCRIPTION_INACTIVE = "SubscriptionInactive"
    REMINDERS_DISABLED_FOR_CLINIC = "RemindersDisabledForClinic"
    NOT_SCHEDULED_OR_ALREADY_SENT = "NotScheduledOrAlreadySent"
    NOT_DUE_YET = "NotDueYet"
    QUOTA_EXCEEDED = "QuotaExceeded"


class ReminderState(str, Enum):
    NO_REMINDER = "NoReminder"
    SCHEDULED = "Scheduled"
    SENT = "Sent"


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: Optional[DeniedReason] = None

    def __bool__(self) -> bool:
        return self.eligible


ELIGIBLE = EligibilityResult(eligible=True)


@dataclass(frozen=True)
class UsagePeriod:
    """The quota period a clinic's reminder counter belongs to (a local calendar month)."""

    key: str
    start: datetime
    end: datetime


def current_usage_period(tz: TimezoneLike, now: Optional[datetime] = None) -> UsagePeriod:
    """Calendar month containing ``now`` on the clinic's own wall clock."""
    clinic_tz = as_clinic_timezone(tz)
    now = to_utc_aware(now) if now is not None else utc_now()
    local_today = clinic_tz.local_date(now)
    first = local_today.replace(day=1)
    if first.month == 12:
        next_first = date(first.year + 1, 1, 1)
    else:
        next_first = date(first.year, first.month + 1, 1)
    return UsagePeriod(
        key=f"{first.year:04d}-{first.month:02d}",
        start=clinic_tz.local_to_utc(first, time.min),
        end=clinic_tz.local_to_utc(next_first, time.min),
    )


def usage_in_period(clinic, period: UsagePeriod) -> int:
    """Reminders already sent in ``period``; a counter from an older period counts as zero."""
    if clinic.reminder_usage_period != period.key:
        return 0
    return clinic.reminders_sent_this_period or 0


def reminder_state(visit) -> ReminderState:
    if visit.reminder_sent:
        return ReminderState.SENT
    if visit.is_reminder_enabled and visit.next_reminder_date is not None:
        return ReminderState.SCHEDULED
    return ReminderState.NO_REMINDER


def subscription_is_active(clinic, now: Optional[datetime] = None) -> bool:
    if not clinic.is_active:
        return False
    if clinic.subscription_end_date is None:
        return True
    now = to_utc_aware(now) if now is not None else utc_now()
    return to_utc_aware(clinic.subscription_end_date) >= now


def is_eligible(
    clinic,
    visit,
    period: UsagePeriod,
    now: Optional[datetime] = None,
    window: Optional[TimeWindow] = None,
) -> EligibilityResult:
    now = to_utc_aware(now) if now is not None else utc_now()

    if not subscription_is_active(clinic, now):
        return EligibilityResult(False, DeniedReason.SUBSCRIPTION_INACTIVE)

    if not clinic.can_send_reminders:
        return EligibilityResult(False, DeniedReason.REMINDERS_DISABLED_FOR_CLINIC)

    if not visit.is_reminder_enabled or visit.reminder_sent:
        return EligibilityResult(False, DeniedReason.NOT_SCHEDULED_OR_ALREADY_SENT)

    # Due means inside today's clinic-local window, not merely in the future
    if window is None:
        window = resolve_day_window(clinic.timezone, now)
    if not window.contains(visit.next_reminder_date):
        return EligibilityResult(False, DeniedReason.NOT_DUE_YET)

    limit = clinic.reminder_monthly_limit or 0
    if limit <= 0 or usage_in_period(clinic, period) >= limit:
        return EligibilityResult(False, DeniedReason.QUOTA_EXCEEDED)

    return ELIGIBLE
