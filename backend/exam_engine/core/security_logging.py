"""Security event logging for the abuse gates."""

from typing import Any

from fastapi import Request

from exam_engine.common.request_id import get_request_id
from exam_engine.core.logging import get_logger

logger = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """Best-effort client IP (forwarded headers are consulted when no peer is known)."""
    if request.client:
        return request.client.host
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return "unknown"


def log_security_event(
    request: Request,
    event_type: str,
    outcome: str,  # "allow", "deny", "degraded"
    reason_code: str | None = None,
    user_id: str | None = None,
    **extra_fields: Any,
) -> None:
    """
    Log a security decision with request id, client IP and user agent.

    Args:
        request: Incoming request
        event_type: e.g. "rate_limited_exam_sessions.start_user", "bot_verification_failed"
        outcome: "allow", "deny" or "degraded"
        reason_code: Error code when denied
        user_id: Caller id when known
        **extra_fields: Additional structured fields
    """
    log_data: dict[str, Any] = {
        "event_type": event_type,
        "request_id": get_request_id(request),
        "outcome": outcome,
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent"),
    }
    if user_id:
        log_data["user_id"] = user_id
    if reason_code:
        log_data["reason_code"] = reason_code
    log_data.update(extra_fields)

    if outcome in ("deny", "degraded"):
        logger.warning(f"security_event_{outcome}", extra=log_data)
    else:
        logger.info("security_event_allow", extra=log_data)
