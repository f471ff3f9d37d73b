"""Redis-backed per-user rate limiting for exam routes."""

import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Request, status
from redis.exceptions import RedisError

from exam_engine.core.app_exceptions import raise_app_error
from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger
from exam_engine.core.redis_client import get_redis_client
from exam_engine.core.security_logging import log_security_event

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: int  # Unix timestamp when the window resets
    retry_after: int  # Seconds until retry is allowed


def _allow_unlimited(max_requests: int, window_seconds: int) -> RateLimitResult:
    return RateLimitResult(
        allowed=True,
        remaining=max_requests,
        reset_at=0,
        retry_after=window_seconds,
    )


def _check_rate_limit(
    scope: str,
    identifier: str,
    max_requests: int,
    window_seconds: int,
) -> RateLimitResult:
    """
    Fixed-window counter: atomic INCR, expiry set only by the first hit so
    later hits never extend the window.

    Key format: rl:{scope}:{identifier}:{window_seconds}

    Fails open (allows the request) when Redis is unavailable or errors;
    the exam flow must not stall on a cache outage.
    """
    redis_client = get_redis_client()

    if redis_client is None:
        logger.warning(
            f"Redis unavailable for rate limit {scope}:{identifier}, failing open",
            extra={"scope": scope, "identifier": identifier},
        )
        return _allow_unlimited(max_requests, window_seconds)

    key = f"rl:{scope}:{identifier}:{window_seconds}"

    try:
        current_count = redis_client.incr(key)
        if current_count == 1:
            redis_client.expire(key, window_seconds)
        ttl = redis_client.ttl(key)
        if ttl < 0:
            # Key left without expiry (first EXPIRE lost); bound it now
            redis_client.expire(key, window_seconds)
            ttl = window_seconds
    except RedisError as e:
        logger.error(
            f"Rate limit check failed for {scope}:{identifier}: {e}",
            exc_info=True,
            extra={"scope": scope, "identifier": identifier},
        )
        return _allow_unlimited(max_requests, window_seconds)

    reset_at = int(time.time()) + max(ttl, 0)

    if current_count > max_requests:
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_at=reset_at,
            retry_after=max(ttl, 1),
        )

    return RateLimitResult(
        allowed=True,
        remaining=max(0, max_requests - current_count),
        reset_at=reset_at,
        retry_after=0,
    )


def get_rate_limit_policy(route_key: str) -> dict:
    """Per-user policy for a route; values come from settings so they can be tuned per deploy."""
    policies = {
        "exam_sessions.start": {
            "user": {
                "max_requests": settings.RL_EXAM_START_MAX_REQUESTS,
                "window_seconds": settings.RL_EXAM_START_WINDOW_SECONDS,
            },
        },
        "exam_sessions.mutate": {
            "user": {
                "max_requests": settings.RL_EXAM_MAX_REQUESTS,
                "window_seconds": settings.RL_EXAM_WINDOW_SECONDS,
            },
        },
    }
    return policies.get(route_key, {})


def create_user_rate_limit_dep(route_key: str) -> Callable:
    """
    Create a FastAPI dependency for user-based rate limiting.

    The dependency depends on get_current_user, so authentication always runs
    first and the counter is keyed by the caller's user id.

    Usage:
        @router.post(
            "/exam-sessions",
            dependencies=[Depends(create_user_rate_limit_dep("exam_sessions.start"))],
        )
    """
    from exam_engine.core.dependencies import get_current_user

    user_policy = get_rate_limit_policy(route_key).get("user", {})
    if not user_policy:

        def noop() -> None:
            pass

        return noop

    max_requests = user_policy["max_requests"]
    window_seconds = user_policy["window_seconds"]

    def dependency(request: Request, current_user=Depends(get_current_user)) -> None:
        user_id = str(current_user.id)
        scope = f"{route_key}:user"
        result = _check_rate_limit(scope, user_id, max_requests, window_seconds)

        if not result.allowed:
            log_security_event(
                request,
                event_type=f"rate_limited_{route_key}_user",
                outcome="deny",
                reason_code="RATE_LIMITED",
                user_id=user_id,
            )
            raise_app_error(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                code="RATE_LIMITED",
                message="Too many requests. Try again later.",
                details={"retry_after_seconds": result.retry_after},
            )

    return dependency
