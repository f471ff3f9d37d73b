"""Exam session endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from exam_engine.core.bot_verification import require_bot_verification
from exam_engine.core.dependencies import AuthContext, DbSession, require_exam_api_key
from exam_engine.core.rate_limit import create_user_rate_limit_dep
from exam_engine.schemas.session import (
    AnswerResult,
    AnswerSubmit,
    ExamSessionCreate,
    ExamSessionOut,
    SessionAbandonOut,
    SessionCompletionOut,
    SessionQuestionOut,
    SessionResultsOut,
    SessionStatusOut,
    ViolationReport,
    ViolationResult,
)
from exam_engine.services import time_authority
from exam_engine.services.answer_recorder import submit_answer
from exam_engine.services.scoring import build_results
from exam_engine.services.session_lifecycle import (
    abandon_session,
    complete_session,
    create_session,
    get_question,
    get_status,
    pinned_question_ids,
)
from exam_engine.services.violation_tracker import track_violation

router = APIRouter(dependencies=[Depends(require_exam_api_key)])

mutate_rate_limit = create_user_rate_limit_dep("exam_sessions.mutate")


@router.post(
    "",
    response_model=ExamSessionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[
        Depends(create_user_rate_limit_dep("exam_sessions.start")),
        Depends(require_bot_verification),
    ],
)
async def start_exam_session(
    body: ExamSessionCreate,
    db: DbSession,
    auth: AuthContext,
):
    """
    Start an exam session.

    Access is re-checked, the question order is pinned and the server clock
    becomes the session start time.
    """
    session = await create_session(db, auth, body)
    return ExamSessionOut(
        id=session.id,
        exam_id=session.exam_id,
        category=session.exam_category,
        status=session.status,
        question_ids=pinned_question_ids(db, session),
        total_questions=session.total_questions,
        started_at=time_authority.as_utc(session.started_at),
        time_limit_minutes=session.time_limit_minutes,
        deadline=time_authority.deadline(session),
        shuffle_questions=session.shuffle_questions,
        shuffle_options=session.shuffle_options,
        server_time=time_authority.server_now(),
    )


@router.get("/{session_id}/status", response_model=SessionStatusOut)
async def exam_session_status(
    session_id: UUID,
    db: DbSession,
    auth: AuthContext,
):
    """Status sync, polled by the client. Applies lazy expiry."""
    return await get_status(db, auth, session_id)


@router.get("/{session_id}/questions/{index}", response_model=SessionQuestionOut)
async def exam_session_question(
    session_id: UUID,
    index: int,
    db: DbSession,
    auth: AuthContext,
):
    return await get_question(db, auth, session_id, index)


@router.post(
    "/{session_id}/answers",
    response_model=AnswerResult,
    dependencies=[Depends(mutate_rate_limit)],
)
async def submit_exam_answer(
    session_id: UUID,
    body: AnswerSubmit,
    db: DbSession,
    auth: AuthContext,
):
    """Submit the final answer for one question."""
    return await submit_answer(db, auth, session_id, body)


@router.post(
    "/{session_id}/violations",
    response_model=ViolationResult,
    dependencies=[Depends(mutate_rate_limit)],
)
async def report_violation(
    session_id: UUID,
    body: ViolationReport,
    db: DbSession,
    auth: AuthContext,
):
    """
    Record an integrity violation.

    Returns recorded=false (not an error) when the session has already ended.
    auto_submitted=true means the session was just finalized for violations.
    """
    return await track_violation(db, auth, session_id, body)


@router.post(
    "/{session_id}/complete",
    response_model=SessionCompletionOut,
    dependencies=[Depends(mutate_rate_limit)],
)
async def complete_exam_session(
    session_id: UUID,
    db: DbSession,
    auth: AuthContext,
):
    session = await complete_session(db, auth, session_id)
    return SessionCompletionOut(
        session_id=session.id,
        status=session.status,
        finish_reason=session.finish_reason,
        score=float(session.score) if session.score is not None else None,
        correct_count=session.correct_count,
        total_questions=session.total_questions,
        completed_at=(
            time_authority.as_utc(session.completed_at) if session.completed_at else None
        ),
    )


@router.post(
    "/{session_id}/abandon",
    response_model=SessionAbandonOut,
    dependencies=[Depends(mutate_rate_limit)],
)
async def abandon_exam_session(
    session_id: UUID,
    db: DbSession,
    auth: AuthContext,
):
    session = await abandon_session(db, auth, session_id)
    return SessionAbandonOut(session_id=session.id, status=session.status)


@router.get("/{session_id}/results", response_model=SessionResultsOut)
async def exam_session_results(
    session_id: UUID,
    db: DbSession,
    auth: AuthContext,
):
    """Results; the per-question breakdown is included only where policy allows."""
    return await build_results(db, auth, session_id)
