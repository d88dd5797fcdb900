from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class ReminderSettings(BaseSettings):
    # Celery configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: Optional[str] = None
    WORKER_CONCURRENCY: int = 2
    QUEUE_NAME: str = "reminders"

    # Scheduling: hourly by default so every clinic-local day is scanned,
    # including DST-shortened ones. "13" gives a single daily run.
    SCAN_HOURS_UTC: str = "*"
    SCAN_MINUTE_UTC: int = 0
    SCAN_BATCH_SIZE: int = 500

    # Dashboard horizon for "upcoming" lists and counts
    UPCOMING_DAYS_AHEAD: int = 30
    UPCOMING_VISIT_TYPE: str = "vaccination"

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = SettingsConfigDict(env_prefix="REMINDER_", env_file=".env", extra="ignore")


settings = ReminderSettings()
