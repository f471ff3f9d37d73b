"""Tests for bot verification on session start."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from exam_engine.core import bot_verification
from exam_engine.core.config import settings
from tests.helpers.seed import create_test_exam


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _patched_client(response=None, error=None) -> MagicMock:
    client = MagicMock()
    client.post = AsyncMock(return_value=response, side_effect=error)
    client_cm = MagicMock()
    client_cm.__aenter__ = AsyncMock(return_value=client)
    client_cm.__aexit__ = AsyncMock(return_value=None)
    return client_cm


@pytest.fixture
def recaptcha_enabled(monkeypatch):
    monkeypatch.setattr(settings, "RECAPTCHA_SECRET_KEY", "server-secret")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"success": True, "score": 0.9}, True),
        ({"success": True, "score": 0.5}, True),
        ({"success": True, "score": 0.2}, False),
        ({"success": True}, True),
        ({"success": False}, False),
    ],
)
async def test_verify_bot_token_scores(recaptcha_enabled, payload, expected) -> None:
    with patch.object(bot_verification.httpx, "AsyncClient", return_value=_patched_client(_response(payload))):
        assert await bot_verification.verify_bot_token("token", "1.2.3.4") is expected


@pytest.mark.asyncio
async def test_verify_bot_token_fails_closed_on_transport_error(recaptcha_enabled) -> None:
    client_cm = _patched_client(error=httpx.ConnectTimeout("timeout"))
    with patch.object(bot_verification.httpx, "AsyncClient", return_value=client_cm):
        assert await bot_verification.verify_bot_token("token") is False


def test_missing_token_is_rejected(recaptcha_enabled, client, student_headers, db, examiner) -> None:
    exam = create_test_exam(db, examiner)

    response = client.post(
        "/v1/exam-sessions", json={"exam_id": str(exam.id)}, headers=student_headers
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "BOT_VERIFICATION_REQUIRED"


def test_failed_verification_is_rejected(
    recaptcha_enabled, client, student_headers, db, examiner
) -> None:
    exam = create_test_exam(db, examiner)

    with patch.object(bot_verification, "verify_bot_token", AsyncMock(return_value=False)):
        response = client.post(
            "/v1/exam-sessions",
            json={"exam_id": str(exam.id)},
            headers={**student_headers, "X-Captcha-Token": "bad"},
        )

    assert response.status_code == 403
    assert response.json()["error_code"] == "BOT_VERIFICATION_FAILED"


def test_passing_verification_starts_session(
    recaptcha_enabled, client, student_headers, db, examiner
) -> None:
    exam = create_test_exam(db, examiner)

    with patch.object(bot_verification, "verify_bot_token", AsyncMock(return_value=True)):
        response = client.post(
            "/v1/exam-sessions",
            json={"exam_id": str(exam.id)},
            headers={**student_headers, "X-Captcha-Token": "good"},
        )

    assert response.status_code == 201
