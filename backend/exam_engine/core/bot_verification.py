"""Bot verification for session start (reCAPTCHA-compatible siteverify)."""

from typing import Annotated

import httpx
from fastapi import Header, Request, status

from exam_engine.core.app_exceptions import raise_app_error
from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger
from exam_engine.core.security_logging import get_client_ip, log_security_event

logger = get_logger(__name__)


async def verify_bot_token(token: str, remote_ip: str | None = None) -> bool:
    """
    Ask the verification service whether a client token is human.

    Returns False on any transport or protocol failure (fail closed).
    """
    data = {"secret": settings.RECAPTCHA_SECRET_KEY, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip

    try:
        async with httpx.AsyncClient(timeout=settings.RECAPTCHA_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.RECAPTCHA_VERIFY_URL, data=data)
            response.raise_for_status()
            result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Bot verification request failed: {e}")
        return False

    if not result.get("success"):
        return False
    # v3 responses carry a score; v2 responses do not
    score = result.get("score")
    if score is not None and score < settings.RECAPTCHA_MIN_SCORE:
        return False
    return True


async def require_bot_verification(
    request: Request,
    x_captcha_token: Annotated[str | None, Header()] = None,
) -> None:
    """Dependency guarding session start. Disabled when RECAPTCHA_SECRET_KEY is unset."""
    if not settings.RECAPTCHA_SECRET_KEY:
        return

    if not x_captcha_token:
        log_security_event(
            request,
            event_type="bot_verification_missing",
            outcome="deny",
            reason_code="BOT_VERIFICATION_REQUIRED",
        )
        raise_app_error(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="BOT_VERIFICATION_REQUIRED",
            message="Bot verification token required",
        )

    if not await verify_bot_token(x_captcha_token, get_client_ip(request)):
        log_security_event(
            request,
            event_type="bot_verification_failed",
            outcome="deny",
            reason_code="BOT_VERIFICATION_FAILED",
        )
        raise_app_error(
            status_code=status.HTTP_403_FORBIDDEN,
            code="BOT_VERIFICATION_FAILED",
            message="Bot verification failed",
        )
