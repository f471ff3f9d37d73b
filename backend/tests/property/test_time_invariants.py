"""Property-based tests for time authority and scoring invariants."""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings, strategies as st

from exam_engine.models.session import ExamSession
from exam_engine.services import time_authority
from exam_engine.services.scoring import compute_score

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


@settings(max_examples=200, deadline=None)
@given(
    limit_minutes=st.integers(min_value=1, max_value=600),
    earlier=st.floats(min_value=0, max_value=40_000, allow_nan=False, allow_infinity=False),
    delta=st.floats(min_value=0, max_value=40_000, allow_nan=False, allow_infinity=False),
)
def test_remaining_is_non_increasing_and_non_negative(
    limit_minutes: int, earlier: float, delta: float
) -> None:
    """
    Property: remaining time never increases as server time moves forward.

    Invariants:
    - remaining(t1) >= remaining(t2) for t1 <= t2
    - remaining >= 0
    - remaining <= limit
    """
    session = ExamSession(started_at=T0, time_limit_minutes=limit_minutes)
    t1 = T0 + timedelta(seconds=earlier)
    t2 = t1 + timedelta(seconds=delta)

    r1 = time_authority.remaining_seconds(session, t1)
    r2 = time_authority.remaining_seconds(session, t2)

    assert 0 <= r2 <= r1 <= limit_minutes * 60


@settings(max_examples=100, deadline=None)
@given(limit_minutes=st.integers(min_value=1, max_value=600))
def test_remaining_hits_zero_exactly_at_limit(limit_minutes: int) -> None:
    session = ExamSession(started_at=T0, time_limit_minutes=limit_minutes)
    at_deadline = T0 + timedelta(minutes=limit_minutes)

    assert time_authority.remaining_seconds(session, at_deadline) == 0
    assert time_authority.remaining_seconds(session, at_deadline - timedelta(seconds=1)) == 1
    assert time_authority.is_expired(session, at_deadline)
    assert not time_authority.is_expired(session, at_deadline - timedelta(seconds=1))


@settings(max_examples=200, deadline=None)
@given(
    correctness=st.lists(st.sampled_from([True, False, None]), max_size=80),
    unanswered=st.integers(min_value=0, max_value=20),
)
def test_score_is_bounded_and_ignores_ungraded(
    correctness: list[bool | None], unanswered: int
) -> None:
    """
    Property: score stays in [0, 100] and equals correct/total*100.

    Ungraded (None) answers never add to the score.
    """
    total = len(correctness) + unanswered
    summary = compute_score(correctness, total)

    assert 0.0 <= summary.score <= 100.0
    assert summary.correct_count == sum(1 for c in correctness if c is True)
    if total:
        assert summary.score == round(summary.correct_count / total * 100, 2)
    else:
        assert summary.score == 0.0
