"""Pydantic schemas for exam access and invitations."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from exam_engine.models.exam import ExamCategory


class AccessCheckRequest(BaseModel):
    invitation_token: str | None = Field(None, max_length=128)


class ExamSummary(BaseModel):
    """Public exam fields (never contains questions or answer keys)."""

    id: UUID
    title: str
    description: str | None = None
    exam_type: str
    subject: str
    year: int
    category: ExamCategory
    duration_minutes: int | None = None
    passing_score: int | None = None
    max_attempts: int | None = None
    question_count: int
    shuffle_questions: bool
    randomize_options: bool
    start_date: datetime | None = None
    end_date: datetime | None = None


class AccessCheckOut(BaseModel):
    allowed: bool
    reason: str | None = None
    details: dict[str, Any] | None = None
    access_type: str | None = None
    exam: ExamSummary | None = None


class ExamInstructionsOut(BaseModel):
    exam: ExamSummary
    instructions: list[str]


class InvitationCreate(BaseModel):
    user_id: UUID | None = None
    email: EmailStr | None = None
    expires_at: datetime | None = None


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    exam_id: UUID
    user_id: UUID | None
    email: str | None
    token: str
    expires_at: datetime | None
    created_at: datetime | None = None
