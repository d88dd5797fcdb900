from prometheus_client import Counter


scheduler_scans_total = Counter(
    "reminder_scheduler_scans_total",
    "Total scheduler scan cycles",
)

reminders_eligible_total = Counter(
    "reminders_eligible_total",
    "Visits found eligible for a reminder",
)

reminders_denied_total = Counter(
    "reminders_denied_total",
    "Reminder candidates rejected by the eligibility rules",
    ["reason"],
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total successful reminder dispatches",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed reminder dispatches",
)

reminders_record_conflicts_total = Counter(
    "reminders_record_conflicts_total",
    "Dispatches whose sent flag or usage counter could not be recorded",
)
