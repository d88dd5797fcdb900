import logging

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from .celery_app import celery_app
from .service import ReminderService

logger = logging.getLogger(__name__)


@celery_app.task(name="reminders.scan_and_dispatch")
def scan_and_dispatch_task() -> dict:
    """Evaluate today's reminder candidates for every active clinic. Returns the scan summary."""
    db: Session = SessionLocal()
    try:
        summary = ReminderService(db).scan_and_dispatch()
    except Exception:
        logger.exception("Reminder scan failed")
        raise
    finally:
        db.close()
    return summary.as_dict()
