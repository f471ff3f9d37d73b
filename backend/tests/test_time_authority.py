"""Tests for the server time authority."""

from datetime import datetime, timedelta, timezone

from exam_engine.models.session import ExamSession
from exam_engine.services import time_authority

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def make_session(time_limit_minutes: int | None, started_at: datetime = T0) -> ExamSession:
    return ExamSession(started_at=started_at, time_limit_minutes=time_limit_minutes)


def test_untimed_session_has_no_remaining_time() -> None:
    session = make_session(None)
    assert time_authority.remaining_seconds(session, T0 + timedelta(days=3)) is None
    assert time_authority.is_expired(session, T0 + timedelta(days=3)) is False
    assert time_authority.deadline(session) is None


def test_remaining_counts_down_from_limit() -> None:
    session = make_session(1)
    assert time_authority.remaining_seconds(session, T0) == 60
    assert time_authority.remaining_seconds(session, T0 + timedelta(seconds=15)) == 45
    # Partial seconds are not rounded in the client's favour beyond the whole second
    assert time_authority.remaining_seconds(session, T0 + timedelta(seconds=15.7)) == 45


def test_reaches_zero_exactly_at_deadline() -> None:
    session = make_session(1)
    assert time_authority.remaining_seconds(session, T0 + timedelta(seconds=59)) == 1
    assert time_authority.is_expired(session, T0 + timedelta(seconds=59)) is False
    assert time_authority.remaining_seconds(session, T0 + timedelta(seconds=60)) == 0
    assert time_authority.is_expired(session, T0 + timedelta(seconds=60)) is True


def test_never_negative_after_deadline() -> None:
    session = make_session(1)
    assert time_authority.remaining_seconds(session, T0 + timedelta(hours=5)) == 0


def test_naive_stored_start_is_treated_as_utc() -> None:
    session = make_session(10, started_at=T0.replace(tzinfo=None))
    assert time_authority.remaining_seconds(session, T0 + timedelta(minutes=4)) == 360
    assert time_authority.deadline(session) == T0 + timedelta(minutes=10)


def test_server_now_is_timezone_aware() -> None:
    now = time_authority.server_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
