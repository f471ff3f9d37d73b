"""
Server-side time authority for exam sessions.

Every expiry decision in the engine goes through this module. Client clocks
are never consulted: callers pass `server_now()` (or a fixed instant in tests).
"""

import math
from datetime import datetime, timedelta, timezone

from exam_engine.models.session import ExamSession


def server_now() -> datetime:
    """The server clock (timezone-aware UTC)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a stored datetime to aware UTC (naive values are UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def remaining_seconds(session: ExamSession, now: datetime) -> int | None:
    """
    Whole seconds left in the session, never negative.

    Returns None for untimed sessions.
    """
    if session.time_limit_minutes is None:
        return None
    elapsed = (as_utc(now) - as_utc(session.started_at)).total_seconds()
    elapsed_whole = max(0, math.floor(elapsed))
    return max(0, session.time_limit_minutes * 60 - elapsed_whole)


def is_expired(session: ExamSession, now: datetime) -> bool:
    remaining = remaining_seconds(session, now)
    return remaining is not None and remaining <= 0


def deadline(session: ExamSession) -> datetime | None:
    """Instant at which a timed session expires."""
    if session.time_limit_minutes is None:
        return None
    return as_utc(session.started_at) + timedelta(minutes=session.time_limit_minutes)
