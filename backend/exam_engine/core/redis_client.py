"""Redis client used by the rate limiter."""

import redis
from redis.exceptions import ConnectionError, RedisError

from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """Return the shared Redis client, or None when Redis is disabled or unreachable."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if not settings.REDIS_URL:
            if settings.REDIS_REQUIRED:
                raise ValueError("REDIS_URL must be set when REDIS_REQUIRED=true")
            logger.warning("Redis enabled but REDIS_URL not set; rate limiting disabled")
            return None

        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=1,
                socket_timeout=1,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            _redis_client.ping()
            logger.info("Redis connection established")
        except (ConnectionError, RedisError) as e:
            if settings.REDIS_REQUIRED:
                raise ConnectionError(
                    f"Redis connection failed and REDIS_REQUIRED=true: {e}"
                ) from e
            logger.warning(f"Redis connection failed (non-fatal): {e}")
            _redis_client = None

    return _redis_client


def is_redis_available() -> bool:
    client = get_redis_client()
    if client is None:
        return False
    try:
        client.ping()
        return True
    except RedisError:
        return False


def init_redis() -> None:
    """Connect on startup so misconfiguration surfaces early."""
    if settings.REDIS_ENABLED:
        try:
            get_redis_client()
        except (ConnectionError, RedisError, ValueError) as e:
            if settings.REDIS_REQUIRED:
                raise
            logger.warning(f"Redis initialization failed (non-fatal): {e}")
