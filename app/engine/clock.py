# app/engine/clock.py
"""
Clock / deadline tracker.

Deadlines are always recomputed server-side from the stored start instant and
the evaluation's time limit; nothing here keeps state of its own. The clock is
injected so tests can move time explicitly.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Normalise to an aware UTC instant (SQLite hands back naive values)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, start: datetime):
        self._now = ensure_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


def deadline_for(
    started_at: datetime,
    time_limit_minutes: Optional[int],
) -> Optional[datetime]:
    if time_limit_minutes is None:
        return None
    return ensure_utc(started_at) + timedelta(minutes=time_limit_minutes)


def time_remaining(
    started_at: datetime,
    time_limit_minutes: Optional[int],
    now: datetime,
) -> Optional[timedelta]:
    """
    max(0, limit - (now - started_at)), or None for an untimed evaluation.
    """
    deadline = deadline_for(started_at, time_limit_minutes)
    if deadline is None:
        return None
    return max(timedelta(0), deadline - ensure_utc(now))


def is_past_deadline(
    started_at: datetime,
    time_limit_minutes: Optional[int],
    now: datetime,
) -> bool:
    # The deadline instant itself already counts as expired
    deadline = deadline_for(started_at, time_limit_minutes)
    return deadline is not None and ensure_utc(now) >= deadline


def is_idle(
    last_activity_at: datetime,
    idle_timeout_minutes: Optional[int],
    now: datetime,
) -> bool:
    if not idle_timeout_minutes:
        return False
    idle_for = ensure_utc(now) - ensure_utc(last_activity_at)
    return idle_for >= timedelta(minutes=idle_timeout_minutes)
