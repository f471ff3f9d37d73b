"""Exam, question and invitation models."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from exam_engine.db.base import Base


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class ExamCategory(str, PyEnum):
    """Exam category; drives access rules and feedback policy."""

    PRACTICE = "practice"
    TEST = "test"
    RECRUITMENT = "recruitment"
    COMPETITION = "competition"
    CHALLENGE = "challenge"


class ExamStatus(str, PyEnum):
    """Exam publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class QuestionType(str, PyEnum):
    """Question type."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    ESSAY = "essay"
    FILL_IN_BLANK = "fill_in_blank"


# Types graded by matching the selected option against the correct flag
GRADABLE_QUESTION_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})


class Exam(Base):
    """Exam definition."""

    __tablename__ = "exams"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    exam_type = Column(String(50), nullable=False)  # e.g. "WAEC", "JAMB"
    subject = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    category = Column(
        Enum(ExamCategory, name="exam_category", values_callable=_enum_values),
        nullable=False,
        default=ExamCategory.PRACTICE,
    )
    status = Column(
        Enum(ExamStatus, name="exam_status", values_callable=_enum_values),
        nullable=False,
        default=ExamStatus.DRAFT,
    )

    duration_minutes = Column(Integer, nullable=True)  # null = unlimited
    passing_score = Column(Integer, nullable=True)  # percentage
    max_attempts = Column(Integer, nullable=True)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    randomize_options = Column(Boolean, nullable=False, default=False)

    # Visibility window
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)  # soft delete

    exam_questions = relationship(
        "ExamQuestion",
        back_populates="exam",
        order_by="ExamQuestion.order_index",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_exams_status_category", "status", "category"),
        Index("ix_exams_created_by", "created_by"),
    )


class Question(Base):
    """Question bank entry. Text columns hold the codec's stored form."""

    __tablename__ = "questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_type = Column(
        Enum(QuestionType, name="question_type", values_callable=_enum_values),
        nullable=False,
        default=QuestionType.MULTIPLE_CHOICE,
    )
    question_text = Column(Text, nullable=False)
    question_image = Column(String(500), nullable=True)
    points = Column(Integer, nullable=False, default=1)
    explanation = Column(Text, nullable=True)
    time_limit_seconds = Column(Integer, nullable=True)

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.order_index",
        cascade="all, delete-orphan",
    )


class QuestionOption(Base):
    """Answer option for a question."""

    __tablename__ = "question_options"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    option_text = Column(Text, nullable=False)
    option_image = Column(String(500), nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")

    __table_args__ = (Index("ix_question_options_question_id", "question_id"),)


class ExamQuestion(Base):
    """Question membership and defined order within an exam."""

    __tablename__ = "exam_questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    order_index = Column(Integer, nullable=False, default=0)

    exam = relationship("Exam", back_populates="exam_questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("exam_id", "question_id", name="uq_exam_question"),
        Index("ix_exam_questions_exam_order", "exam_id", "order_index"),
    )


class ExamInvitation(Base):
    """Scoped access token for gated exam categories."""

    __tablename__ = "exam_invitations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    email = Column(String, nullable=True)
    token = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)  # stamped at session start only

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_exam_invitations_exam_id", "exam_id"),)
