"""Access gate: may this caller start a session for this exam?"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exam_engine.core.app_exceptions import AppError
from exam_engine.core.authorization import (
    PERM_BYPASS_INVITATION,
    PERM_CREATE_INVITATION,
    AuthorizationContext,
)
from exam_engine.core.logging import get_logger
from exam_engine.models.exam import Exam, ExamCategory, ExamInvitation, ExamQuestion, ExamStatus
from exam_engine.models.session import ExamSession, SessionStatus
from exam_engine.services.time_authority import as_utc

logger = get_logger(__name__)

# Categories where the invitation token is consumed at session start
SINGLE_USE_INVITATION_CATEGORIES = frozenset({ExamCategory.RECRUITMENT, ExamCategory.COMPETITION})
OPEN_CATEGORIES = frozenset({ExamCategory.PRACTICE, ExamCategory.TEST})
PROCTORED_CATEGORIES = frozenset(
    {ExamCategory.TEST, ExamCategory.RECRUITMENT, ExamCategory.COMPETITION}
)

# Denial reasons
EXAM_NOT_FOUND = "EXAM_NOT_FOUND"
EXAM_NOT_PUBLISHED = "EXAM_NOT_PUBLISHED"
EXAM_OUTSIDE_WINDOW = "EXAM_OUTSIDE_WINDOW"
INVITATION_REQUIRED = "INVITATION_REQUIRED"
INVITATION_INVALID = "INVITATION_INVALID"
INVITATION_EXPIRED = "INVITATION_EXPIRED"
INVITATION_USED = "INVITATION_USED"
INVITATION_MISMATCH = "INVITATION_MISMATCH"
MAX_ATTEMPTS_REACHED = "MAX_ATTEMPTS_REACHED"


@dataclass
class AccessDecision:
    """Outcome of an access check. `exam` is set whenever the exam exists."""

    allowed: bool
    reason: str | None = None
    exam: Exam | None = None
    invitation: ExamInvitation | None = None
    access_type: str | None = None  # "open", "owner", "privileged", "invitation"
    details: dict[str, Any] | None = None


def _deny(reason: str, exam: Exam | None = None, **details: Any) -> AccessDecision:
    return AccessDecision(allowed=False, reason=reason, exam=exam, details=details or None)


def load_exam(db: Session, exam_id: UUID) -> Exam | None:
    """Exam by id, excluding soft-deleted rows."""
    return db.execute(
        select(Exam).where(Exam.id == exam_id, Exam.deleted_at.is_(None))
    ).scalar_one_or_none()


def count_exam_questions(db: Session, exam_id: UUID) -> int:
    return db.execute(
        select(func.count()).select_from(ExamQuestion).where(ExamQuestion.exam_id == exam_id)
    ).scalar_one()


def _check_invitation(
    db: Session,
    auth: AuthorizationContext,
    exam: Exam,
    token: str | None,
    now: datetime,
) -> AccessDecision:
    if not token:
        return _deny(INVITATION_REQUIRED, exam)

    invitation = db.execute(
        select(ExamInvitation).where(
            ExamInvitation.token == token,
            ExamInvitation.exam_id == exam.id,
        )
    ).scalar_one_or_none()
    if invitation is None:
        return _deny(INVITATION_INVALID, exam)

    if invitation.expires_at is not None and as_utc(invitation.expires_at) <= now:
        return _deny(INVITATION_EXPIRED, exam)

    # Challenge links are shareable; only single-use categories are consumed
    if exam.category in SINGLE_USE_INVITATION_CATEGORIES and invitation.used_at is not None:
        return _deny(INVITATION_USED, exam)

    user = auth.current_user()
    if invitation.user_id is not None and invitation.user_id != user.id:
        return _deny(INVITATION_MISMATCH, exam)
    if invitation.email and invitation.email.strip().lower() != (user.email or "").lower():
        return _deny(INVITATION_MISMATCH, exam)

    return AccessDecision(allowed=True, exam=exam, invitation=invitation, access_type="invitation")


def _count_finished_attempts(db: Session, user_id: UUID, exam_id: UUID) -> int:
    return db.execute(
        select(func.count())
        .select_from(ExamSession)
        .where(
            ExamSession.user_id == user_id,
            ExamSession.exam_id == exam_id,
            ExamSession.status.in_([SessionStatus.COMPLETED, SessionStatus.EXPIRED]),
        )
    ).scalar_one()


def evaluate_access(
    db: Session,
    auth: AuthorizationContext,
    exam_id: UUID,
    token: str | None,
    now: datetime,
) -> AccessDecision:
    """
    Run the access checks in order; the first failure wins.

    Never writes: the invitation is only consumed by session creation.
    """
    exam = load_exam(db, exam_id)
    if exam is None:
        return _deny(EXAM_NOT_FOUND)

    if exam.status != ExamStatus.PUBLISHED:
        return _deny(EXAM_NOT_PUBLISHED, exam)

    if exam.start_date is not None and now < as_utc(exam.start_date):
        return _deny(EXAM_OUTSIDE_WINDOW, exam, window="not_started")
    if exam.end_date is not None and now > as_utc(exam.end_date):
        return _deny(EXAM_OUTSIDE_WINDOW, exam, window="ended")

    user = auth.current_user()
    category = ExamCategory(exam.category)

    if category in OPEN_CATEGORIES:
        decision = AccessDecision(allowed=True, exam=exam, access_type="open")
    elif category in SINGLE_USE_INVITATION_CATEGORIES:
        if exam.created_by == user.id:
            decision = AccessDecision(allowed=True, exam=exam, access_type="owner")
        elif auth.has_permission(*PERM_BYPASS_INVITATION):
            decision = AccessDecision(allowed=True, exam=exam, access_type="privileged")
        else:
            decision = _check_invitation(db, auth, exam, token, now)
    else:
        decision = _check_invitation(db, auth, exam, token, now)

    if not decision.allowed:
        return decision

    if exam.max_attempts is not None:
        attempts = _count_finished_attempts(db, user.id, exam.id)
        if attempts >= exam.max_attempts:
            return _deny(
                MAX_ATTEMPTS_REACHED,
                exam,
                max_attempts=exam.max_attempts,
                attempts=attempts,
            )

    return decision


def build_exam_summary(db: Session, exam: Exam) -> dict[str, Any]:
    """Public exam fields. Never includes questions or answer keys."""
    return {
        "id": exam.id,
        "title": exam.title,
        "description": exam.description,
        "exam_type": exam.exam_type,
        "subject": exam.subject,
        "year": exam.year,
        "category": ExamCategory(exam.category).value,
        "duration_minutes": exam.duration_minutes,
        "passing_score": exam.passing_score,
        "max_attempts": exam.max_attempts,
        "question_count": count_exam_questions(db, exam.id),
        "shuffle_questions": exam.shuffle_questions,
        "randomize_options": exam.randomize_options,
        "start_date": exam.start_date,
        "end_date": exam.end_date,
    }


async def check_access(
    db: Session,
    auth: AuthorizationContext,
    exam_id: UUID,
    token: str | None,
    now: datetime,
) -> dict[str, Any]:
    """checkAccess: allow/deny plus the exam summary when the exam exists."""
    decision = evaluate_access(db, auth, exam_id, token, now)
    return {
        "allowed": decision.allowed,
        "reason": decision.reason,
        "details": decision.details,
        "access_type": decision.access_type,
        "exam": build_exam_summary(db, decision.exam) if decision.exam is not None else None,
    }


def _build_instructions(exam: Exam, question_count: int, now: datetime) -> list[str]:
    category = ExamCategory(exam.category)
    instructions = [
        f"This is a {exam.exam_type} {exam.subject} exam.",
        f"The exam contains {question_count} questions.",
    ]

    if exam.start_date is not None and now < as_utc(exam.start_date):
        instructions.append(f"The exam opens at {as_utc(exam.start_date):%Y-%m-%d %H:%M} UTC.")
    if exam.end_date is not None:
        if now > as_utc(exam.end_date):
            instructions.append("The exam has closed.")
        else:
            instructions.append(f"The exam closes at {as_utc(exam.end_date):%Y-%m-%d %H:%M} UTC.")

    if exam.duration_minutes:
        instructions.append(f"You have {exam.duration_minutes} minutes to complete the exam.")
        instructions.append("The exam is submitted automatically when time runs out.")
    else:
        instructions.append("There is no time limit for this exam.")

    if exam.shuffle_questions:
        instructions.append("Questions are presented in random order.")
    if exam.randomize_options:
        instructions.append("Answer options are presented in random order.")

    instructions.append("Each answer is final once submitted.")

    if category in PROCTORED_CATEGORIES:
        instructions.append("Switching tabs or leaving the exam window is recorded as a violation.")
        instructions.append("Copying and pasting are recorded as violations.")
        instructions.append(
            "Reaching the violation limit submits the exam automatically."
        )

    if exam.passing_score is not None:
        instructions.append(f"The passing score is {exam.passing_score}%.")

    if category == ExamCategory.PRACTICE:
        instructions.append("You will see feedback after each answer.")

    return instructions


async def get_exam_instructions(db: Session, exam_id: UUID, now: datetime) -> dict[str, Any]:
    """Instruction list shown before a session starts, including window notices relative to `now`."""
    exam = load_exam(db, exam_id)
    if exam is None or exam.status != ExamStatus.PUBLISHED:
        raise AppError(
            status_code=status.HTTP_404_NOT_FOUND,
            code=EXAM_NOT_FOUND,
            message="Exam not found",
        )

    question_count = count_exam_questions(db, exam.id)
    return {
        "exam": build_exam_summary(db, exam),
        "instructions": _build_instructions(exam, question_count, now),
    }


async def create_invitation(
    db: Session,
    auth: AuthorizationContext,
    exam_id: UUID,
    user_id: UUID | None = None,
    email: str | None = None,
    expires_at: datetime | None = None,
) -> ExamInvitation:
    """Mint an invitation token. Allowed for the exam creator and `invitation:create` holders."""
    exam = load_exam(db, exam_id)
    if exam is None:
        raise AppError(
            status_code=status.HTTP_404_NOT_FOUND,
            code=EXAM_NOT_FOUND,
            message="Exam not found",
        )

    caller = auth.current_user()
    if exam.created_by != caller.id and not auth.has_permission(*PERM_CREATE_INVITATION):
        raise AppError(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message="Not allowed to invite candidates to this exam",
        )

    invitation = ExamInvitation(
        exam_id=exam.id,
        user_id=user_id,
        email=email.strip().lower() if email else None,
        token=secrets.token_urlsafe(32),
        expires_at=expires_at,
        created_by=caller.id,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    logger.info(
        "exam_invitation_created",
        extra={
            "exam_id": str(exam.id),
            "invitation_id": str(invitation.id),
            "created_by": str(caller.id),
            "scoped": bool(user_id or email),
        },
    )
    return invitation
