"""Scoring and results compilation."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from exam_engine.core.app_exceptions import conflict_error, invalid_session_error
from exam_engine.core.authorization import PERM_READ_ANY_RESULTS, AuthorizationContext
from exam_engine.core.codec import get_question_codec
from exam_engine.models.exam import Exam, ExamCategory, Question, QuestionType
from exam_engine.models.session import (
    ExamAnswer,
    ExamSession,
    SessionQuestion,
    SessionStatus,
)
from exam_engine.services import time_authority
from exam_engine.services.question_content import correct_option, decode_explanation

RESULT_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.EXPIRED})


@dataclass(frozen=True)
class ScoreSummary:
    correct_count: int
    total_questions: int
    score: float  # percentage, 2 decimals


def compute_score(correctness: Iterable[bool | None], total_questions: int) -> ScoreSummary:
    """
    Percentage of pinned questions answered correctly.

    Ungraded answers (None) count as not correct. Unanswered questions count
    against the score because the denominator is the pinned question count.
    """
    correct = sum(1 for value in correctness if value is True)
    if total_questions <= 0:
        return ScoreSummary(correct_count=correct, total_questions=0, score=0.0)
    score = round(correct / total_questions * 100, 2)
    return ScoreSummary(correct_count=correct, total_questions=total_questions, score=score)


def score_session(db: Session, session: ExamSession) -> ScoreSummary:
    """Score a session from the answers currently stored for it."""
    correctness = db.execute(
        select(ExamAnswer.is_correct).where(ExamAnswer.session_id == session.id)
    ).scalars().all()
    return compute_score(correctness, session.total_questions)


def _can_view_breakdown(session: ExamSession, is_creator: bool, privileged: bool) -> bool:
    return session.exam_category == ExamCategory.PRACTICE or is_creator or privileged


def _build_breakdown(db: Session, session: ExamSession) -> list[dict[str, Any]]:
    codec = get_question_codec()
    answers = {
        answer.question_id: answer
        for answer in db.execute(
            select(ExamAnswer).where(ExamAnswer.session_id == session.id)
        ).scalars()
    }
    pinned = db.execute(
        select(SessionQuestion)
        .where(SessionQuestion.session_id == session.id)
        .order_by(SessionQuestion.position)
    ).scalars().all()

    breakdown = []
    for row in pinned:
        question = db.get(Question, row.question_id)
        answer = answers.get(row.question_id)
        correct = correct_option(question)
        selected = None
        if answer is not None and answer.selected_option_id is not None:
            selected = next((o for o in question.options if o.id == answer.selected_option_id), None)

        breakdown.append(
            {
                "index": row.position,
                "question_id": question.id,
                "question_type": QuestionType(question.question_type).value,
                "question_text": codec.decode(question.question_text),
                "answered": answer is not None,
                "selected_option_id": answer.selected_option_id if answer else None,
                "selected_option_text": codec.decode(selected.option_text) if selected else None,
                "text_answer": answer.text_answer if answer else None,
                "correct_option_id": correct.id if correct else None,
                "correct_option_text": codec.decode(correct.option_text) if correct else None,
                "is_correct": answer.is_correct if answer else None,
                "time_spent_seconds": answer.time_spent_seconds if answer else None,
                "explanation": decode_explanation(question, codec),
            }
        )
    return breakdown


async def build_results(
    db: Session,
    auth: AuthorizationContext,
    session_id: UUID,
) -> dict[str, Any]:
    """
    Results view for a finished session.

    Visible to the session owner, the exam creator and `results:read_any`
    holders. The per-question breakdown (answer keys, explanations) is only
    included for practice sessions or privileged viewers.
    """
    from exam_engine.services.session_lifecycle import reconcile_expiry

    if auth.is_banned():
        raise invalid_session_error()

    session = db.get(ExamSession, session_id)
    if session is None:
        raise invalid_session_error()

    viewer = auth.current_user()
    exam = db.get(Exam, session.exam_id)
    is_owner = session.user_id == viewer.id
    is_creator = exam is not None and exam.created_by == viewer.id
    privileged = auth.has_permission(*PERM_READ_ANY_RESULTS)
    if not (is_owner or is_creator or privileged):
        raise invalid_session_error()

    reconcile_expiry(db, session, time_authority.server_now())

    if session.status not in RESULT_STATUSES:
        raise conflict_error(
            "SESSION_NOT_COMPLETED",
            "Results are available once the session is completed",
            details={"status": SessionStatus(session.status).value},
        )

    time_spent = sum(
        db.execute(
            select(ExamAnswer.time_spent_seconds).where(ExamAnswer.session_id == session.id)
        ).scalars().all()
    )
    score = float(session.score) if session.score is not None else 0.0
    passing_score = exam.passing_score if exam is not None else None

    results: dict[str, Any] = {
        "session_id": session.id,
        "exam_id": session.exam_id,
        "exam_title": exam.title if exam is not None else None,
        "category": ExamCategory(session.exam_category).value,
        "status": SessionStatus(session.status).value,
        "finish_reason": session.finish_reason.value if session.finish_reason else None,
        "score": score,
        "correct_count": session.correct_count or 0,
        "total_questions": session.total_questions,
        "answered_count": session.answered_count,
        "violation_count": session.violation_count,
        "started_at": time_authority.as_utc(session.started_at),
        "completed_at": (
            time_authority.as_utc(session.completed_at) if session.completed_at else None
        ),
        "time_spent_seconds": time_spent,
        "passing_score": passing_score,
        "passed": score >= passing_score if passing_score is not None else None,
        "breakdown": None,
    }

    if _can_view_breakdown(session, is_creator, privileged):
        results["breakdown"] = _build_breakdown(db, session)

    return results
