"""Integrity violation tracking with auto-submit at the configured limit."""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from exam_engine.core.authorization import AuthorizationContext
from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger
from exam_engine.db.session import unit_of_work
from exam_engine.models.session import ExamSession, ExamViolation, FinishReason, SessionStatus
from exam_engine.schemas.session import ViolationReport
from exam_engine.services import time_authority
from exam_engine.services.session_lifecycle import (
    finalize_session,
    load_owned_session,
    reconcile_expiry,
)

logger = get_logger(__name__)


def _result(session: ExamSession, recorded: bool, auto_submitted: bool) -> dict[str, Any]:
    return {
        "recorded": recorded,
        "violation_count": session.violation_count,
        "auto_submitted": auto_submitted,
        "session_status": session.status,
        "finish_reason": session.finish_reason,
        "violation_limit": settings.EXAM_VIOLATION_LIMIT,
    }


async def track_violation(
    db: Session,
    auth: AuthorizationContext,
    session_id: UUID,
    report: ViolationReport,
) -> dict[str, Any]:
    """
    Append a violation and bump the counter.

    Inactive (or just-expired) sessions are a soft no-op reporting
    recorded=False, since reports routinely race with completion. Reaching
    the limit finalizes the session through the lifecycle with reason
    VIOLATION_LIMIT.
    """
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()

    reconcile_expiry(db, session, now)
    if session.status != SessionStatus.ACTIVE:
        return _result(session, recorded=False, auto_submitted=False)

    with unit_of_work(db):
        result = db.execute(
            update(ExamSession)
            .where(ExamSession.id == session.id, ExamSession.status == SessionStatus.ACTIVE)
            .values(violation_count=ExamSession.violation_count + 1)
            .execution_options(synchronize_session=False)
        )
        recorded = result.rowcount == 1
        if recorded:
            db.add(
                ExamViolation(
                    session_id=session.id,
                    violation_type=report.violation_type,
                    client_ts=time_authority.as_utc(report.timestamp),
                    recorded_at=now,
                    metadata_json=report.metadata,
                )
            )
            new_count = db.execute(
                select(ExamSession.violation_count).where(ExamSession.id == session.id)
            ).scalar_one()

    db.refresh(session)
    if not recorded:
        return _result(session, recorded=False, auto_submitted=False)

    logger.info(
        "exam_violation_recorded",
        extra={
            "session_id": str(session.id),
            "user_id": str(session.user_id),
            "violation_type": report.violation_type.value,
            "violation_count": new_count,
        },
    )

    auto_submitted = False
    if settings.EXAM_AUTO_SUBMIT_ON_VIOLATION_LIMIT and new_count >= settings.EXAM_VIOLATION_LIMIT:
        auto_submitted = finalize_session(db, session, FinishReason.VIOLATION_LIMIT, now)
        if auto_submitted:
            logger.warning(
                "exam_session_auto_submitted",
                extra={
                    "session_id": str(session.id),
                    "user_id": str(session.user_id),
                    "violation_count": new_count,
                },
            )

    return _result(session, recorded=True, auto_submitted=auto_submitted)
