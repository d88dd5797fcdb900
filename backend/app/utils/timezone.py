import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from app.core.config import settings

logger = logging.getLogger(__name__)

UTC = dt_timezone.utc

# Last representable millisecond of a local day
END_OF_DAY = time(23, 59, 59, 999000)


def to_utc_naive(dt: datetime | None) -> datetime | None:
    """
    Normalize any datetime to UTC-naive (tzinfo=None) for consistent storage/comparison.
    - Aware datetimes are converted to UTC and tzinfo is stripped
    - Naive datetimes are returned as-is (assumed UTC)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def to_utc_aware(dt: datetime | None) -> datetime | None:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC) for APIs needing tz-aware values.
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def _load_zone(name: str) -> ZoneInfo:
    # ZoneInfo raises ValueError for malformed keys such as "../etc" or "/abs"
    return ZoneInfo(name)


def _fallback_zone() -> tuple[str, ZoneInfo]:
    name = settings.DEFAULT_TIMEZONE
    try:
        return name, _load_zone(name)
    except Exception:  # noqa: BLE001
        logger.warning("DEFAULT_TIMEZONE %r is not a recognized zone; using UTC", name)
        return "UTC", ZoneInfo("UTC")


@dataclass(frozen=True)
class ClinicTimezone:
    """A validated IANA zone, built once at the boundary.

    ``parse`` never raises: an empty or unknown name resolves to the fallback
    zone (``DEFAULT_TIMEZONE``, UTC unless configured) with ``is_fallback`` set,
    so callers can keep working with a degraded but valid calendar.
    """

    name: str
    zone: ZoneInfo = field(compare=False)
    is_fallback: bool = False
    requested: Optional[str] = None

    @classmethod
    def parse(cls, name: Optional[str]) -> "ClinicTimezone":
        if name is None:
            fallback_name, zone = _fallback_zone()
            return cls(name=fallback_name, zone=zone, is_fallback=True)
        candidate = name.strip()
        if candidate:
            try:
                return cls(name=candidate, zone=_load_zone(candidate), requested=name)
            except Exception:  # noqa: BLE001 - unknown keys, directories, bad paths
                pass
        fallback_name, zone = _fallback_zone()
        logger.warning("Invalid timezone %r; falling back to %s", name, fallback_name)
        return cls(name=fallback_name, zone=zone, is_fallback=True, requested=name)

    @classmethod
    def utc(cls) -> "ClinicTimezone":
        return cls(name="UTC", zone=ZoneInfo("UTC"))

    def local_date(self, instant: datetime) -> date:
        return to_utc_aware(instant).astimezone(self.zone).date()

    def local_to_utc(self, local_date: date, local_time: time) -> datetime:
        # The offset is the one in force at that local moment, so DST days come out 23h/25h wide
        return datetime.combine(local_date, local_time, tzinfo=self.zone).astimezone(UTC)


TimezoneLike = Union[str, None, ClinicTimezone]


def as_clinic_timezone(tz: TimezoneLike) -> ClinicTimezone:
    if isinstance(tz, ClinicTimezone):
        return tz
    return ClinicTimezone.parse(tz)


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval of UTC instants ``[start, end]``."""

    start: datetime
    end: datetime

    def __post_init__(self):
        start = to_utc_aware(self.start)
        end = to_utc_aware(self.end)
        if start > end:
            raise ValueError(f"TimeWindow start {start.isoformat()} is after end {end.isoformat()}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def contains(self, instant: datetime | None) -> bool:
        if instant is None:
            return False
        return self.start <= to_utc_aware(instant) <= self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def _utc_day_window(now: datetime, days_ahead: int = 0) -> TimeWindow:
    today = to_utc_aware(now).date()
    # Horizons past the calendar's end are clamped to its last day
    if days_ahead > (date.max - today).days:
        last_day = date.max
    else:
        last_day = today + timedelta(days=days_ahead)
    return TimeWindow(
        start=datetime.combine(today, time.min, tzinfo=UTC),
        end=datetime.combine(last_day, END_OF_DAY, tzinfo=UTC),
    )


def _resolve(tz: TimezoneLike, now: Optional[datetime], days_ahead: int) -> TimeWindow:
    if days_ahead < 0:
        raise ValueError("days_ahead must be non-negative")
    now = to_utc_aware(now) if now is not None else utc_now()
    clinic_tz = as_clinic_timezone(tz)
    try:
        today = clinic_tz.local_date(now)
        return TimeWindow(
            start=clinic_tz.local_to_utc(today, time.min),
            end=clinic_tz.local_to_utc(today + timedelta(days=days_ahead), END_OF_DAY),
        )
    except Exception as e:  # noqa: BLE001
        logger.warning(
            "Could not resolve window for timezone %r (%s); using the UTC calendar day",
            clinic_tz.requested or clinic_tz.name,
            e,
        )
        return _utc_day_window(now, days_ahead)


def resolve_day_window(tz: TimezoneLike, now: Optional[datetime] = None) -> TimeWindow:
    """Clinic-local calendar day containing ``now``, as UTC instants.

    ``start`` is local 00:00:00.000 and ``end`` local 23:59:59.999.
    Unknown zones degrade to the fallback calendar day and are logged.
    """
    return _resolve(tz, now, 0)


def resolve_horizon_window(tz: TimezoneLike, now: Optional[datetime] = None, days_ahead: int = 30) -> TimeWindow:
    """From the start of today to the end of the local day ``days_ahead`` days later."""
    return _resolve(tz, now, days_ahead)


def to_local(dt: datetime | None, tz: TimezoneLike) -> datetime | None:
    """Convert an instant to the clinic's wall clock (tz-aware)."""
    if dt is None:
        return None
    return to_utc_aware(dt).astimezone(as_clinic_timezone(tz).zone)
