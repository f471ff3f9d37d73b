"""Tests for the Redis-backed per-user rate limit."""

from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from exam_engine.core.rate_limit import (
    RateLimitResult,
    _check_rate_limit,
    create_user_rate_limit_dep,
    get_rate_limit_policy,
)


def _mock_redis(counts: list[int], ttl: int = 42) -> MagicMock:
    mock_redis = MagicMock()
    mock_redis.incr.side_effect = counts
    mock_redis.ttl.return_value = ttl
    return mock_redis


class _WindowRedis:
    """Minimal counter store with per-key TTLs for window behaviour."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    def ttl(self, key):
        return self.ttls.get(key, -1)


class TestRateLimitCore:
    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_blocks_after_max_requests(self, mock_get_redis):
        mock_get_redis.return_value = _mock_redis([1, 2, 3])

        results = [_check_rate_limit("exam", "user-1", 2, 60) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert results[0].remaining == 1
        assert results[2].retry_after == 42

    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_key_includes_scope_identifier_and_window(self, mock_get_redis):
        mock_redis = _mock_redis([1])
        mock_get_redis.return_value = mock_redis

        _check_rate_limit("exam_sessions.start:user", "abc", 10, 60)

        mock_redis.incr.assert_called_once_with("rl:exam_sessions.start:user:abc:60")
        mock_redis.expire.assert_called_once_with("rl:exam_sessions.start:user:abc:60", 60)

    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_later_hits_do_not_extend_the_window(self, mock_get_redis):
        store = _WindowRedis()
        mock_get_redis.return_value = store
        key = "rl:exam:user-1:60"

        _check_rate_limit("exam", "user-1", 1, 60)
        store.ttls[key] = 5  # window nearly over
        blocked = _check_rate_limit("exam", "user-1", 1, 60)

        assert blocked.allowed is False
        assert store.ttl(key) == 5
        assert blocked.retry_after == 5

    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_key_without_expiry_is_bounded(self, mock_get_redis):
        store = _WindowRedis()
        store.counts["rl:exam:user-1:60"] = 3
        mock_get_redis.return_value = store

        result = _check_rate_limit("exam", "user-1", 2, 60)

        assert result.retry_after == 60
        assert store.ttl("rl:exam:user-1:60") == 60

    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_fails_open_without_redis(self, mock_get_redis):
        mock_get_redis.return_value = None

        result = _check_rate_limit("exam", "user-1", 5, 60)

        assert result == RateLimitResult(allowed=True, remaining=5, reset_at=0, retry_after=60)

    @patch("exam_engine.core.rate_limit.get_redis_client")
    def test_fails_open_on_redis_error(self, mock_get_redis):
        mock_redis = MagicMock()
        mock_redis.incr.side_effect = RedisConnectionError("down")
        mock_get_redis.return_value = mock_redis

        assert _check_rate_limit("exam", "user-1", 5, 60).allowed is True


def test_policies_come_from_settings(monkeypatch):
    from exam_engine.core.config import settings

    monkeypatch.setattr(settings, "RL_EXAM_MAX_REQUESTS", 7)
    policy = get_rate_limit_policy("exam_sessions.mutate")
    assert policy["user"] == {"max_requests": 7, "window_seconds": settings.RL_EXAM_WINDOW_SECONDS}
    assert get_rate_limit_policy("unknown") == {}


def test_unknown_route_gets_noop_dependency():
    dependency = create_user_rate_limit_dep("unknown.route")
    assert dependency() is None


@patch("exam_engine.core.rate_limit._check_rate_limit")
def test_rate_limited_request_returns_429_with_retry_after(
    mock_check, client, student_headers, db, examiner
):
    from tests.helpers.seed import create_test_exam

    mock_check.return_value = RateLimitResult(allowed=False, remaining=0, reset_at=0, retry_after=30)
    exam = create_test_exam(db, examiner)

    response = client.post(
        "/v1/exam-sessions", json={"exam_id": str(exam.id)}, headers=student_headers
    )

    assert response.status_code == 429
    body = response.json()
    assert body["error_code"] == "RATE_LIMITED"
    assert body["details"]["retry_after_seconds"] == 30
    assert response.headers["Retry-After"] == "30"
