"""Test seed helpers for creating exams, questions and users."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from exam_engine.core.codec import get_question_codec
from exam_engine.models.exam import (
    Exam,
    ExamCategory,
    ExamInvitation,
    ExamQuestion,
    ExamStatus,
    Question,
    QuestionOption,
    QuestionType,
)
from exam_engine.models.user import User, UserRole


def create_test_user(
    db: Session,
    email: str | None = None,
    role: UserRole = UserRole.STUDENT,
    is_active: bool = True,
    is_banned: bool = False,
    **kwargs: Any,
) -> User:
    """Create a user with deterministic defaults."""
    user_id = kwargs.pop("id", uuid.uuid4())
    if email is None:
        email = f"test_{role.value.lower()}_{user_id.hex[:8]}@test.example.com"

    user = User(
        id=user_id,
        email=email.lower().strip(),
        role=role.value,
        is_active=is_active,
        is_banned=is_banned,
        full_name=kwargs.pop("full_name", f"Test {role.value}"),
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


def create_test_question(
    db: Session,
    creator: User,
    text: str = "What is 2 + 2?",
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    options: list[str] | None = None,
    correct_index: int | None = 0,
    explanation: str | None = "Basic arithmetic.",
) -> Question:
    """
    Create a question with options stored through the configured codec.

    `correct_index` is 0-based; None leaves every option incorrect.
    """
    codec = get_question_codec()
    if options is None:
        options = [] if question_type in (QuestionType.ESSAY, QuestionType.FILL_IN_BLANK) else [
            "3",
            "4",
            "5",
            "22",
        ]

    question = Question(
        question_type=question_type,
        question_text=codec.encode(text),
        explanation=codec.encode(explanation) if explanation is not None else None,
        points=1,
        created_by=creator.id,
    )
    for index, option_text in enumerate(options):
        question.options.append(
            QuestionOption(
                option_text=codec.encode(option_text),
                is_correct=index == correct_index,
                order_index=index,
            )
        )
    db.add(question)
    db.flush()
    return question


def create_test_exam(
    db: Session,
    creator: User,
    category: ExamCategory = ExamCategory.PRACTICE,
    num_questions: int = 5,
    status: ExamStatus = ExamStatus.PUBLISHED,
    duration_minutes: int | None = None,
    **kwargs: Any,
) -> Exam:
    """Create an exam with `num_questions` multiple-choice questions (option index 1 correct)."""
    exam = Exam(
        title=kwargs.pop("title", f"{category.value.title()} Exam"),
        exam_type=kwargs.pop("exam_type", "WAEC"),
        subject=kwargs.pop("subject", "Mathematics"),
        year=kwargs.pop("year", 2024),
        category=category,
        status=status,
        duration_minutes=duration_minutes,
        created_by=creator.id,
        **kwargs,
    )
    db.add(exam)
    db.flush()

    for index in range(num_questions):
        question = create_test_question(
            db,
            creator,
            text=f"Question {index + 1}",
            options=["A", "B", "C", "D"],
            correct_index=1,
            explanation=f"Explanation {index + 1}",
        )
        db.add(ExamQuestion(exam_id=exam.id, question_id=question.id, order_index=index))

    db.commit()
    return exam


def add_question_to_exam(db: Session, exam: Exam, question: Question, order_index: int) -> None:
    db.add(ExamQuestion(exam_id=exam.id, question_id=question.id, order_index=order_index))
    db.commit()


def create_test_invitation(
    db: Session,
    exam: Exam,
    creator: User,
    token: str | None = None,
    user_id: uuid.UUID | None = None,
    email: str | None = None,
    expires_at: datetime | None = None,
    used_at: datetime | None = None,
) -> ExamInvitation:
    invitation = ExamInvitation(
        exam_id=exam.id,
        user_id=user_id,
        email=email,
        token=token or uuid.uuid4().hex,
        expires_at=expires_at,
        used_at=used_at,
        created_by=creator.id,
    )
    db.add(invitation)
    db.commit()
    return invitation
