"""Database models."""

# Import all models here so Alembic can detect them
from exam_engine.models.exam import (
    GRADABLE_QUESTION_TYPES,
    Exam,
    ExamCategory,
    ExamInvitation,
    ExamQuestion,
    ExamStatus,
    Question,
    QuestionOption,
    QuestionType,
)
from exam_engine.models.session import (
    TERMINAL_STATUSES,
    ExamAnswer,
    ExamSession,
    ExamViolation,
    FinishReason,
    SessionQuestion,
    SessionStatus,
    ViolationType,
)
from exam_engine.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Exam",
    "ExamCategory",
    "ExamStatus",
    "ExamQuestion",
    "ExamInvitation",
    "Question",
    "QuestionOption",
    "QuestionType",
    "GRADABLE_QUESTION_TYPES",
    "ExamSession",
    "SessionQuestion",
    "ExamAnswer",
    "ExamViolation",
    "SessionStatus",
    "FinishReason",
    "ViolationType",
    "TERMINAL_STATUSES",
]
