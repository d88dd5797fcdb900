"""Reminder scan, dispatch recording and message rendering."""
from datetime import datetime, timedelta, timezone

import pytest

from app.reminders.dispatcher import DispatchError, LoggingDispatcher, ReminderDispatcher, build_reminder_message
from app.reminders.eligibility import current_usage_period
from app.reminders.repository import ReminderStateConflict, record_dispatch
from app.reminders.service import ReminderService

UTC = timezone.utc
NOW = datetime(2024, 3, 10, 16, 0, tzinfo=UTC)
DUE = datetime(2024, 3, 10, 14, 0, tzinfo=UTC)


class RecordingDispatcher(ReminderDispatcher):
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, clinic, visit):
        if visit.id in self.fail_for:
            raise DispatchError("gateway unavailable")
        self.sent.append(visit.id)


def scheduled_visit(factory, pet, **kwargs):
    values = dict(next_reminder_date=DUE, is_reminder_enabled=True, visit_type="vaccination")
    values.update(kwargs)
    return factory.visit(pet, DUE - timedelta(days=365), **values)


def test_record_dispatch_marks_sent_and_counts(factory, db) -> None:
    clinic = factory.clinic(reminders_sent_this_period=3, reminder_usage_period="2024-03")
    visit = scheduled_visit(factory, factory.pet(factory.owner(clinic)))
    period = current_usage_period(clinic.timezone, NOW)

    record_dispatch(db, clinic, visit, period)

    assert visit.reminder_sent is True
    assert clinic.reminders_sent_this_period == 4
    assert clinic.reminder_usage_period == "2024-03"


def test_record_dispatch_resets_counter_on_rollover(factory, db) -> None:
    clinic = factory.clinic(reminders_sent_this_period=100, reminder_usage_period="2024-02")
    visit = scheduled_visit(factory, factory.pet(factory.owner(clinic)))

    record_dispatch(db, clinic, visit, current_usage_period(clinic.timezone, NOW))

    assert clinic.reminders_sent_this_period == 1
    assert clinic.reminder_usage_period == "2024-03"


def test_record_dispatch_twice_conflicts_without_counting(factory, db) -> None:
    clinic = factory.clinic(reminder_usage_period="2024-03")
    visit = scheduled_visit(factory, factory.pet(factory.owner(clinic)))
    period = current_usage_period(clinic.timezone, NOW)
    record_dispatch(db, clinic, visit, period)

    with pytest.raises(ReminderStateConflict):
        record_dispatch(db, clinic, visit, period)

    db.refresh(clinic)
    assert clinic.reminders_sent_this_period == 1


def test_scan_stops_at_quota(factory, db) -> None:
    clinic = factory.clinic(reminder_monthly_limit=2)
    pet = factory.pet(factory.owner(clinic))
    visits = [scheduled_visit(factory, pet) for _ in range(3)]
    dispatcher = RecordingDispatcher()

    summary = ReminderService(db, dispatcher).scan_and_dispatch(NOW)

    assert summary.candidates == 3
    assert summary.dispatched == 2
    assert summary.denied == {"QuotaExceeded": 1}
    assert dispatcher.sent == [visits[0].id, visits[1].id]
    db.refresh(clinic)
    assert clinic.reminders_sent_this_period == 2
    assert clinic.reminder_usage_period == "2024-03"
    db.refresh(visits[2])
    assert visits[2].reminder_sent is False


def test_failed_dispatch_leaves_visit_scheduled(factory, db) -> None:
    clinic = factory.clinic()
    pet = factory.pet(factory.owner(clinic))
    failing = scheduled_visit(factory, pet)
    working = scheduled_visit(factory, pet)

    summary = ReminderService(db, RecordingDispatcher(fail_for=[failing.id])).process_clinic(clinic, NOW)

    assert summary.failed == 1
    assert summary.dispatched == 1
    db.refresh(failing)
    db.refresh(clinic)
    assert failing.reminder_sent is False
    assert clinic.reminders_sent_this_period == 1

    # A later scan on the same local day retries it
    retry = ReminderService(db, RecordingDispatcher()).process_clinic(clinic, NOW)
    assert retry.candidates == 1
    assert retry.dispatched == 1
    db.refresh(failing)
    db.refresh(working)
    assert failing.reminder_sent is True
    assert working.reminder_sent is True


class BrokenDispatcher(ReminderDispatcher):
    def __init__(self, broken_clinic_id):
        self.sent = []
        self.broken_clinic_id = broken_clinic_id

    def send(self, clinic, visit):
        if clinic.id == self.broken_clinic_id:
            raise RuntimeError("template missing")
        self.sent.append(visit.id)


def test_unexpected_dispatch_error_does_not_stop_the_scan(factory, db, caplog) -> None:
    broken = factory.clinic()
    broken_visit = scheduled_visit(factory, factory.pet(factory.owner(broken)))
    healthy = factory.clinic(name="Elsewhere")
    healthy_visit = scheduled_visit(factory, factory.pet(factory.owner(healthy)))

    dispatcher = BrokenDispatcher(broken.id)
    summary = ReminderService(db, dispatcher).scan_and_dispatch(NOW)

    assert summary.clinics == 2
    assert summary.failed == 1
    assert summary.dispatched == 1
    assert dispatcher.sent == [healthy_visit.id]
    db.refresh(broken_visit)
    assert broken_visit.reminder_sent is False
    assert "Unexpected error dispatching reminder for visit" in caplog.text


def test_scan_skips_clinics_without_reminders_and_expired_subscriptions(factory, db) -> None:
    disabled = factory.clinic(can_send_reminders=False)
    scheduled_visit(factory, factory.pet(factory.owner(disabled)))
    expired = factory.clinic(name="Lapsed", subscription_end_date=NOW - timedelta(days=1))
    scheduled_visit(factory, factory.pet(factory.owner(expired)))

    summary = ReminderService(db, RecordingDispatcher()).scan_and_dispatch(NOW)

    # Only the expired clinic is scanned; its visit is denied, not sent
    assert summary.clinics == 1
    assert summary.dispatched == 0
    assert summary.denied == {"SubscriptionInactive": 1}


def test_logging_dispatcher_requires_owner_phone(factory, db, caplog) -> None:
    clinic = factory.clinic()
    reachable = scheduled_visit(factory, factory.pet(factory.owner(clinic)))
    unreachable = scheduled_visit(factory, factory.pet(factory.owner(clinic, phone=None)))
    dispatcher = LoggingDispatcher()

    with caplog.at_level("INFO", logger="app.reminders.dispatcher"):
        dispatcher.send(clinic, reachable)
    assert "Happy Paws" in caplog.text

    with pytest.raises(DispatchError):
        dispatcher.send(clinic, unreachable)


def test_reminder_message_uses_clinic_local_date(factory, db) -> None:
    clinic = factory.clinic(name="Happy Paws", phone="555-0100", timezone="America/New_York")
    pet = factory.pet(factory.owner(clinic), name="Biscuit")
    # 01:30Z on the 11th is still the 10th in New York
    visit = scheduled_visit(factory, pet, next_reminder_date=datetime(2024, 3, 11, 1, 30, tzinfo=UTC))

    assert build_reminder_message(clinic, visit) == (
        "Reminder from Happy Paws: Biscuit's vaccination visit is due on Mar 10, 2024. "
        "Please call us at 555-0100 to schedule."
    )


def test_celery_task_runs_scan_with_its_own_session(factory, db, monkeypatch) -> None:
    from app.reminders import tasks
    from app.reminders.celery_app import celery_app
    from app.utils.timezone import utc_now

    clinic = factory.clinic()
    scheduled_visit(factory, factory.pet(factory.owner(clinic)), next_reminder_date=utc_now())
    monkeypatch.setattr(tasks, "SessionLocal", lambda: db)

    result = tasks.scan_and_dispatch_task()

    assert result["dispatched"] == 1
    schedule = celery_app.conf.beat_schedule["scan-and-dispatch"]
    assert schedule["task"] == tasks.scan_and_dispatch_task.name
    # Hourly, so DST-shortened local days are still scanned
    assert schedule["schedule"].hour == set(range(24))
