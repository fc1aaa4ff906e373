"""
Trial and billing period arithmetic.

Trial windows and period ends are anchored to Indian Standard Time (UTC+05:30,
no DST); every value returned is a timezone-aware UTC datetime.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.core import config


IST = timezone(timedelta(hours=5, minutes=30), name="IST")

# Reminder offsets relative to trial end: 7d, 3d, 1d, 12h before, and at expiry
REMINDER_OFFSETS = (
    timedelta(days=-7),
    timedelta(days=-3),
    timedelta(days=-1),
    timedelta(hours=-12),
    timedelta(0),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_trial_window(now: datetime, days: int = config.TRIAL_DAYS) -> tuple[datetime, datetime]:
    """Return (trial_start, trial_end) for a trial starting now."""
    start_ist = as_utc(now).astimezone(IST)
    end_ist = start_ist + timedelta(days=days)
    return start_ist.astimezone(timezone.utc), end_ist.astimezone(timezone.utc)


def compute_one_year_period_end(base: datetime) -> datetime:
    """Same IST calendar date one year later; Feb 29 rolls back to Feb 28."""
    base_ist = as_utc(base).astimezone(IST)
    try:
        end_ist = base_ist.replace(year=base_ist.year + 1)
    except ValueError:
        end_ist = base_ist.replace(year=base_ist.year + 1, day=28)
    return end_ist.astimezone(timezone.utc)


def get_reminder_schedule(trial_end: datetime) -> list[datetime]:
    trial_end = as_utc(trial_end)
    return [trial_end + offset for offset in REMINDER_OFFSETS]


def get_next_reminder(trial_end: datetime, now: datetime) -> Optional[datetime]:
    now = as_utc(now)
    for scheduled in get_reminder_schedule(trial_end):
        if scheduled > now:
            return scheduled
    return None


def get_days_left(trial_end: datetime, now: datetime) -> int:
    """Whole days remaining, rounded up, never negative."""
    remaining = (as_utc(trial_end) - as_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    days, rest = divmod(remaining, 24 * 60 * 60)
    return int(days) + (1 if rest else 0)
