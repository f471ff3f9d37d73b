"""
Exam session lifecycle: creation, status sync, question delivery and finalization.

This module is the only writer of ExamSession.status. Expiry is decided by
`time_authority`, and every terminal transition goes through
`finalize_session`, a conditional update that only succeeds while the row is
still active.
"""

import hashlib
import random
import secrets
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import status
from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from exam_engine.core.app_exceptions import (
    AppError,
    conflict_error,
    invalid_session_error,
    validation_error,
)
from exam_engine.core.authorization import AuthorizationContext
from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger
from exam_engine.db.session import unit_of_work
from exam_engine.models.exam import Exam, ExamCategory, ExamInvitation, ExamQuestion, Question
from exam_engine.models.session import (
    ExamAnswer,
    ExamSession,
    FinishReason,
    SessionQuestion,
    SessionStatus,
    TERMINAL_STATUSES,
)
from exam_engine.schemas.session import ExamSessionCreate
from exam_engine.services import time_authority
from exam_engine.services.access_gate import (
    EXAM_NOT_FOUND,
    SINGLE_USE_INVITATION_CATEGORIES,
    evaluate_access,
)
from exam_engine.services.question_content import format_question_for_candidate
from exam_engine.services.scoring import score_session

logger = get_logger(__name__)

_STATUS_FOR_REASON = {
    FinishReason.SUBMITTED: SessionStatus.COMPLETED,
    FinishReason.VIOLATION_LIMIT: SessionStatus.COMPLETED,
    FinishReason.TIME_EXPIRED: SessionStatus.EXPIRED,
    FinishReason.ABANDONED: SessionStatus.ABANDONED,
}


# ============================================================================
# Errors
# ============================================================================


def session_expired_error() -> AppError:
    return conflict_error(
        "SESSION_EXPIRED",
        "Exam time has expired",
        details={
            "status": SessionStatus.EXPIRED.value,
            "finish_reason": FinishReason.TIME_EXPIRED.value,
        },
    )


def session_not_active_error(session: ExamSession) -> AppError:
    return conflict_error(
        "SESSION_NOT_ACTIVE",
        "Exam session is no longer active",
        details={
            "status": SessionStatus(session.status).value,
            "finish_reason": session.finish_reason.value if session.finish_reason else None,
        },
    )


# ============================================================================
# Lookup and expiry
# ============================================================================


def load_owned_session(
    db: Session, auth: AuthorizationContext, session_id: UUID
) -> ExamSession:
    """Session owned by the caller. Unknown and foreign sessions fail identically."""
    if auth.is_banned():
        raise invalid_session_error()
    session = db.get(ExamSession, session_id)
    if session is None or session.user_id != auth.current_user().id:
        raise invalid_session_error()
    return session


def finalize_session(
    db: Session,
    session: ExamSession,
    reason: FinishReason,
    now: datetime,
) -> bool:
    """
    Move an active session to its terminal status and score it.

    Returns True when this call performed the transition. A concurrent
    finalize that already won leaves the row untouched and this call returns
    False; either way `session` is refreshed to the stored state.
    """
    target = _STATUS_FOR_REASON[reason]
    with unit_of_work(db):
        result = db.execute(
            update(ExamSession)
            .where(ExamSession.id == session.id, ExamSession.status == SessionStatus.ACTIVE)
            .values(status=target, finish_reason=reason, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1

        # Row is no longer active, so no answer can be added after this read
        if won and target != SessionStatus.ABANDONED:
            summary = score_session(db, session)
            db.execute(
                update(ExamSession)
                .where(ExamSession.id == session.id)
                .values(score=summary.score, correct_count=summary.correct_count)
                .execution_options(synchronize_session=False)
            )

    db.refresh(session)

    if won:
        logger.info(
            "exam_session_finalized",
            extra={
                "event": "exam_session_finalized",
                "session_id": str(session.id),
                "user_id": str(session.user_id),
                "exam_id": str(session.exam_id),
                "status": target.value,
                "finish_reason": reason.value,
                "score": float(session.score) if session.score is not None else None,
                "answered_count": session.answered_count,
                "violation_count": session.violation_count,
            },
        )
    return won


def reconcile_expiry(db: Session, session: ExamSession, now: datetime) -> bool:
    """Finalize an active session whose time has run out. Returns True if it was expired."""
    if session.status == SessionStatus.ACTIVE and time_authority.is_expired(session, now):
        finalize_session(db, session, FinishReason.TIME_EXPIRED, now)
        return True
    return False


def require_live_session(db: Session, session: ExamSession, now: datetime) -> None:
    """
    Guard for calls that act on an ongoing attempt.

    Expiry is re-checked against `now` before anything else, so a stale
    active row never lets a late call through.
    """
    if reconcile_expiry(db, session, now):
        raise session_expired_error()
    if session.status == SessionStatus.EXPIRED:
        raise session_expired_error()
    if session.status != SessionStatus.ACTIVE:
        raise session_not_active_error(session)


# ============================================================================
# Create
# ============================================================================


def _reconcile_active_sessions(db: Session, user_id: UUID, now: datetime) -> list[ExamSession]:
    """Expire the caller's stale active sessions; return the ones still live."""
    active = db.execute(
        select(ExamSession).where(
            ExamSession.user_id == user_id,
            ExamSession.status == SessionStatus.ACTIVE,
        )
    ).scalars().all()
    live = []
    for session in active:
        if not reconcile_expiry(db, session, now):
            live.append(session)
    return live


def _load_question_pool(db: Session, exam_id: UUID) -> list[UUID]:
    """Question ids of the exam in defined order, skipping deleted questions."""
    rows = db.execute(
        select(ExamQuestion.question_id)
        .join(Question, Question.id == ExamQuestion.question_id)
        .where(ExamQuestion.exam_id == exam_id, Question.deleted_at.is_(None))
        .order_by(ExamQuestion.order_index, ExamQuestion.id)
    ).all()
    return [row[0] for row in rows]


def select_questions(
    pool: list[UUID],
    requested: int | None,
    shuffle: bool,
    seed: str,
) -> list[UUID]:
    """
    Pick `min(requested or len(pool), len(pool))` questions.

    Shuffled selection is a uniform permutation (seeded) then truncation;
    otherwise the defined order is truncated.
    """
    count = min(requested or len(pool), len(pool))
    ordered = pool.copy()
    if shuffle:
        rng = random.Random(seed)
        rng.shuffle(ordered)
    return ordered[:count]


def resolve_time_limit(exam: Exam, requested: int | None) -> int | None:
    """
    Time limit in minutes for a new session.

    Practice honours the request (or none). Test uses the request, falling back
    to the exam duration. Gated categories always use the exam duration.
    """
    category = ExamCategory(exam.category)
    if category == ExamCategory.PRACTICE:
        return requested
    if category == ExamCategory.TEST:
        limit = requested or exam.duration_minutes
        if limit is None:
            raise validation_error(
                "TIME_LIMIT_REQUIRED",
                "A time limit is required for test exams",
                field="time_limit_minutes",
            )
        return limit
    return exam.duration_minutes


def _new_shuffle_seed(user_id: UUID, exam_id: UUID, now: datetime) -> str:
    seed_string = ":".join([str(user_id), str(exam_id), now.isoformat(), secrets.token_hex(16)])
    return hashlib.sha256(seed_string.encode()).hexdigest()


async def create_session(
    db: Session,
    auth: AuthorizationContext,
    payload: ExamSessionCreate,
) -> ExamSession:
    """
    Start a session: concurrency check, fresh access check, question pinning
    and invitation consumption, all in one unit of work.

    Raises:
        AppError: CONCURRENT_SESSION_LIMIT, EXAM_NOT_FOUND, ACCESS_DENIED,
            NO_QUESTIONS_AVAILABLE, TIME_LIMIT_REQUIRED or INVITATION_USED
    """
    if auth.is_banned():
        raise AppError(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message="Account is not allowed to take exams",
        )

    user = auth.current_user()
    now = time_authority.server_now()

    live_sessions = _reconcile_active_sessions(db, user.id, now)
    if len(live_sessions) >= settings.EXAM_MAX_CONCURRENT_SESSIONS:
        raise conflict_error(
            "CONCURRENT_SESSION_LIMIT",
            "You already have an exam in progress",
            details={
                "max_concurrent_sessions": settings.EXAM_MAX_CONCURRENT_SESSIONS,
                "active_session_ids": [str(s.id) for s in live_sessions],
            },
        )

    decision = evaluate_access(db, auth, payload.exam_id, payload.invitation_token, now)
    if not decision.allowed:
        if decision.reason == EXAM_NOT_FOUND:
            raise AppError(
                status_code=status.HTTP_404_NOT_FOUND,
                code=EXAM_NOT_FOUND,
                message="Exam not found",
            )
        raise AppError(
            status_code=status.HTTP_403_FORBIDDEN,
            code="ACCESS_DENIED",
            message="You cannot start this exam",
            details={"reason": decision.reason, **(decision.details or {})},
        )
    exam = decision.exam

    pool = _load_question_pool(db, exam.id)
    if not pool:
        raise conflict_error("NO_QUESTIONS_AVAILABLE", "This exam has no questions")

    time_limit = resolve_time_limit(exam, payload.time_limit_minutes)
    shuffle_questions = (
        exam.shuffle_questions if payload.shuffle_questions is None else payload.shuffle_questions
    )
    shuffle_options = (
        exam.randomize_options if payload.shuffle_options is None else payload.shuffle_options
    )
    seed = _new_shuffle_seed(user.id, exam.id, now)
    question_ids = select_questions(pool, payload.question_count, shuffle_questions, seed)

    invitation = decision.invitation
    consume_invitation = (
        invitation is not None and ExamCategory(exam.category) in SINGLE_USE_INVITATION_CATEGORIES
    )

    with unit_of_work(db):
        session = ExamSession(
            user_id=user.id,
            exam_id=exam.id,
            exam_category=exam.category,
            status=SessionStatus.ACTIVE,
            started_at=now,
            time_limit_minutes=time_limit,
            configured_questions=payload.question_count,
            total_questions=len(question_ids),
            shuffle_questions=shuffle_questions,
            shuffle_options=shuffle_options,
            shuffle_seed=seed,
            answered_count=0,
            violation_count=0,
            invitation_id=invitation.id if invitation is not None else None,
        )
        db.add(session)
        db.flush()

        for position, question_id in enumerate(question_ids):
            db.add(SessionQuestion(session_id=session.id, position=position, question_id=question_id))

        if consume_invitation:
            result = db.execute(
                update(ExamInvitation)
                .where(ExamInvitation.id == invitation.id, ExamInvitation.used_at.is_(None))
                .values(used_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise conflict_error("INVITATION_USED", "This invitation has already been used")

    db.refresh(session)

    logger.info(
        "exam_session_started",
        extra={
            "event": "exam_session_started",
            "session_id": str(session.id),
            "user_id": str(user.id),
            "exam_id": str(exam.id),
            "category": ExamCategory(exam.category).value,
            "total_questions": session.total_questions,
            "time_limit_minutes": time_limit,
            "access_type": decision.access_type,
        },
    )
    return session


def pinned_question_ids(db: Session, session: ExamSession) -> list[UUID]:
    return list(
        db.execute(
            select(SessionQuestion.question_id)
            .where(SessionQuestion.session_id == session.id)
            .order_by(SessionQuestion.position)
        ).scalars()
    )


# ============================================================================
# Status and questions
# ============================================================================


def build_status(session: ExamSession, now: datetime) -> dict[str, Any]:
    if session.status == SessionStatus.ACTIVE:
        remaining = time_authority.remaining_seconds(session, now)
    else:
        remaining = 0 if session.time_limit_minutes is not None else None
    return {
        "session_id": session.id,
        "status": session.status,
        "finish_reason": session.finish_reason,
        "remaining_seconds": remaining,
        "is_expired": session.status == SessionStatus.EXPIRED,
        "server_time": now,
        "started_at": time_authority.as_utc(session.started_at),
        "deadline": time_authority.deadline(session),
        "time_limit_minutes": session.time_limit_minutes,
        "answered_count": session.answered_count,
        "total_questions": session.total_questions,
        "violation_count": session.violation_count,
        "poll_interval_seconds": settings.EXAM_STATUS_POLL_SECONDS,
    }


async def get_status(
    db: Session, auth: AuthorizationContext, session_id: UUID
) -> dict[str, Any]:
    """Status sync. Recomputes expiry from the server clock on every call."""
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()
    reconcile_expiry(db, session, now)
    return build_status(session, now)


async def get_question(
    db: Session, auth: AuthorizationContext, session_id: UUID, index: int
) -> dict[str, Any]:
    """Question at a 0-based position of the pinned order."""
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()
    require_live_session(db, session, now)

    if index < 0 or index >= session.total_questions:
        raise validation_error(
            "INVALID_QUESTION_INDEX",
            "Question index out of range",
            field="index",
            total_questions=session.total_questions,
        )

    row = db.execute(
        select(SessionQuestion).where(
            SessionQuestion.session_id == session.id,
            SessionQuestion.position == index,
        )
    ).scalar_one()
    question = db.get(Question, row.question_id)

    is_answered = db.execute(
        select(
            exists().where(
                ExamAnswer.session_id == session.id,
                ExamAnswer.question_id == question.id,
            )
        )
    ).scalar()

    return {
        "session_id": session.id,
        "index": index,
        "total_questions": session.total_questions,
        "question": format_question_for_candidate(
            question, session.shuffle_seed, session.shuffle_options
        ),
        "is_answered": bool(is_answered),
        "remaining_seconds": time_authority.remaining_seconds(session, now),
        "is_expired": False,
        "server_time": now,
    }


# ============================================================================
# Terminal transitions
# ============================================================================


def already_terminal_error(session: ExamSession) -> AppError:
    return conflict_error(
        "ALREADY_TERMINAL",
        "Exam session has already ended",
        details={
            "status": SessionStatus(session.status).value,
            "finish_reason": session.finish_reason.value if session.finish_reason else None,
        },
    )


def _require_finishable(db: Session, session: ExamSession, now: datetime) -> None:
    if session.status in TERMINAL_STATUSES:
        raise already_terminal_error(session)
    if reconcile_expiry(db, session, now):
        raise session_expired_error()


async def complete_session(
    db: Session, auth: AuthorizationContext, session_id: UUID
) -> ExamSession:
    """Explicit submission. A second call fails with ALREADY_TERMINAL and never re-scores."""
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()
    _require_finishable(db, session, now)

    if not finalize_session(db, session, FinishReason.SUBMITTED, now):
        # Lost a race with another finalizer
        raise already_terminal_error(session)
    return session


async def abandon_session(
    db: Session, auth: AuthorizationContext, session_id: UUID
) -> ExamSession:
    """User-initiated early exit; no score is computed."""
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()
    _require_finishable(db, session, now)

    if not finalize_session(db, session, FinishReason.ABANDONED, now):
        raise already_terminal_error(session)
    return session
