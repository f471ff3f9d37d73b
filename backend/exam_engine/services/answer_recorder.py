"""Answer recording: one final answer per question per session."""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exam_engine.core.app_exceptions import conflict_error, validation_error
from exam_engine.core.authorization import AuthorizationContext
from exam_engine.core.logging import get_logger
from exam_engine.db.session import unit_of_work
from exam_engine.models.exam import GRADABLE_QUESTION_TYPES, ExamCategory, Question, QuestionType
from exam_engine.models.session import (
    ExamAnswer,
    ExamSession,
    SessionQuestion,
    SessionStatus,
)
from exam_engine.schemas.session import AnswerSubmit
from exam_engine.services import time_authority
from exam_engine.services.question_content import correct_option, decode_explanation
from exam_engine.services.session_lifecycle import (
    load_owned_session,
    require_live_session,
    session_not_active_error,
)

logger = get_logger(__name__)


def already_answered_error(question_id: UUID):
    return conflict_error(
        "ALREADY_ANSWERED",
        "This question has already been answered",
        details={"question_id": str(question_id)},
    )


def grade_answer(question: Question, selected_option_id: UUID | None) -> bool | None:
    """True/False for gradable types with a selection, None otherwise."""
    if QuestionType(question.question_type) not in GRADABLE_QUESTION_TYPES:
        return None
    if selected_option_id is None:
        return None
    for option in question.options:
        if option.id == selected_option_id:
            return bool(option.is_correct)
    return None


def _build_feedback(question: Question, is_correct: bool | None) -> dict[str, Any]:
    correct = correct_option(question)
    return {
        "is_correct": is_correct,
        "correct_option_id": correct.id if correct else None,
        "explanation": decode_explanation(question),
    }


async def submit_answer(
    db: Session,
    auth: AuthorizationContext,
    session_id: UUID,
    payload: AnswerSubmit,
) -> dict[str, Any]:
    """
    Record an answer.

    Checks run in order: owner, expiry (server clock), active status,
    question membership, duplicate, option membership. The insert and the
    answered-counter increment commit together; the counter update only
    matches an active row and the unique (session, question) constraint
    settles concurrent duplicates.

    Raises:
        AppError: INVALID_SESSION, SESSION_EXPIRED, SESSION_NOT_ACTIVE,
            QUESTION_NOT_IN_SESSION, ALREADY_ANSWERED or INVALID_OPTION
    """
    session = load_owned_session(db, auth, session_id)
    now = time_authority.server_now()
    require_live_session(db, session, now)

    pinned = db.execute(
        select(SessionQuestion.id).where(
            SessionQuestion.session_id == session.id,
            SessionQuestion.question_id == payload.question_id,
        )
    ).scalar_one_or_none()
    if pinned is None:
        raise validation_error(
            "QUESTION_NOT_IN_SESSION",
            "Question is not part of this session",
            field="question_id",
        )

    existing = db.execute(
        select(ExamAnswer.id).where(
            ExamAnswer.session_id == session.id,
            ExamAnswer.question_id == payload.question_id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise already_answered_error(payload.question_id)

    question = db.get(Question, payload.question_id)
    if payload.selected_option_id is not None and payload.selected_option_id not in {
        option.id for option in question.options
    }:
        raise validation_error(
            "INVALID_OPTION",
            "Selected option does not belong to this question",
            field="selected_option_id",
        )

    text_answer = payload.text_answer.strip() if payload.text_answer else None
    is_correct = grade_answer(question, payload.selected_option_id)

    answer = ExamAnswer(
        session_id=session.id,
        question_id=question.id,
        selected_option_id=payload.selected_option_id,
        text_answer=text_answer or None,
        is_correct=is_correct,
        time_spent_seconds=payload.time_spent_seconds,
        answered_at=now,
    )

    try:
        with unit_of_work(db):
            result = db.execute(
                update(ExamSession)
                .where(ExamSession.id == session.id, ExamSession.status == SessionStatus.ACTIVE)
                .values(answered_count=ExamSession.answered_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.refresh(session)
                raise session_not_active_error(session)
            db.add(answer)
            db.flush()
    except IntegrityError:
        logger.info(
            "duplicate_answer_rejected",
            extra={"session_id": str(session_id), "question_id": str(payload.question_id)},
        )
        raise already_answered_error(payload.question_id) from None

    db.refresh(session)

    feedback = None
    if session.exam_category == ExamCategory.PRACTICE:
        feedback = _build_feedback(question, is_correct)

    return {
        "accepted": True,
        "answer_id": answer.id,
        "answered_count": session.answered_count,
        "total_questions": session.total_questions,
        "feedback": feedback,
    }
