"""Pydantic schemas for exam sessions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from exam_engine.core.config import settings
from exam_engine.models.exam import ExamCategory
from exam_engine.models.session import FinishReason, SessionStatus, ViolationType

# ============================================================================
# Requests
# ============================================================================


class ExamSessionCreate(BaseModel):
    """Request to start an exam session."""

    exam_id: UUID
    invitation_token: str | None = Field(None, max_length=128)
    question_count: int | None = Field(
        None,
        ge=1,
        le=settings.EXAM_MAX_QUESTIONS,
        description="Questions for this attempt (defaults to the whole pool)",
    )
    time_limit_minutes: int | None = Field(
        None,
        ge=1,
        le=settings.EXAM_MAX_TIME_LIMIT_MINUTES,
        description="Honoured for practice and test exams only",
    )
    shuffle_questions: bool | None = Field(None, description="Defaults to the exam setting")
    shuffle_options: bool | None = Field(None, description="Defaults to the exam setting")


class AnswerSubmit(BaseModel):
    """Submit the answer for one question. Answers are final."""

    question_id: UUID
    selected_option_id: UUID | None = None
    text_answer: str | None = Field(None, max_length=settings.EXAM_TEXT_ANSWER_MAX_LENGTH)
    time_spent_seconds: int = Field(0, ge=0, description="Client claim, stored only")


class ViolationReport(BaseModel):
    """Integrity event reported by the exam client."""

    violation_type: ViolationType
    timestamp: datetime = Field(..., description="Client clock, informational")
    metadata: dict[str, Any] | None = None


# ============================================================================
# Responses
# ============================================================================


class ExamSessionOut(BaseModel):
    """Started session: id, pinned order and server timing."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    exam_id: UUID
    category: ExamCategory
    status: SessionStatus
    question_ids: list[UUID]
    total_questions: int
    started_at: datetime
    time_limit_minutes: int | None
    deadline: datetime | None
    shuffle_questions: bool
    shuffle_options: bool
    server_time: datetime


class SessionStatusOut(BaseModel):
    session_id: UUID
    status: SessionStatus
    finish_reason: FinishReason | None
    remaining_seconds: int | None
    is_expired: bool
    server_time: datetime
    started_at: datetime
    deadline: datetime | None
    time_limit_minutes: int | None
    answered_count: int
    total_questions: int
    violation_count: int
    poll_interval_seconds: int


class OptionOut(BaseModel):
    id: UUID
    option_text: str
    option_image: str | None = None


class QuestionOut(BaseModel):
    """Question as shown during an attempt (no answer key, no explanation)."""

    id: UUID
    question_type: str
    question_text: str
    question_image: str | None = None
    points: int
    time_limit_seconds: int | None = None
    options: list[OptionOut]


class SessionQuestionOut(BaseModel):
    session_id: UUID
    index: int
    total_questions: int
    question: QuestionOut
    is_answered: bool
    remaining_seconds: int | None
    is_expired: bool
    server_time: datetime


class AnswerFeedback(BaseModel):
    """Immediate feedback, practice sessions only."""

    is_correct: bool | None
    correct_option_id: UUID | None
    explanation: str | None


class AnswerResult(BaseModel):
    accepted: bool
    answer_id: UUID
    answered_count: int
    total_questions: int
    feedback: AnswerFeedback | None = None


class ViolationResult(BaseModel):
    recorded: bool
    violation_count: int
    auto_submitted: bool
    session_status: SessionStatus
    finish_reason: FinishReason | None = None
    violation_limit: int


class SessionCompletionOut(BaseModel):
    session_id: UUID
    status: SessionStatus
    finish_reason: FinishReason | None
    score: float | None
    correct_count: int | None
    total_questions: int
    completed_at: datetime | None


class SessionAbandonOut(BaseModel):
    session_id: UUID
    status: SessionStatus
    acknowledged: bool = True


class QuestionBreakdown(BaseModel):
    index: int
    question_id: UUID
    question_type: str
    question_text: str
    answered: bool
    selected_option_id: UUID | None
    selected_option_text: str | None
    text_answer: str | None
    correct_option_id: UUID | None
    correct_option_text: str | None
    is_correct: bool | None
    time_spent_seconds: int | None
    explanation: str | None


class SessionResultsOut(BaseModel):
    session_id: UUID
    exam_id: UUID
    exam_title: str | None
    category: ExamCategory
    status: SessionStatus
    finish_reason: FinishReason | None
    score: float
    correct_count: int
    total_questions: int
    answered_count: int
    violation_count: int
    started_at: datetime
    completed_at: datetime | None
    time_spent_seconds: int
    passing_score: int | None
    passed: bool | None
    breakdown: list[QuestionBreakdown] | None = None
