"""Exam session models: attempts, pinned order, answers, violations."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from exam_engine.db.base import Base
from exam_engine.models.exam import ExamCategory, _enum_values


class SessionStatus(str, PyEnum):
    """Exam session status. Every value except ACTIVE is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.EXPIRED, SessionStatus.ABANDONED}
)


class FinishReason(str, PyEnum):
    """How a session reached its terminal status."""

    SUBMITTED = "submitted"
    TIME_EXPIRED = "time_expired"
    VIOLATION_LIMIT = "violation_limit"
    ABANDONED = "abandoned"


class ViolationType(str, PyEnum):
    """Integrity events reported by the exam client."""

    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    COPY_ATTEMPT = "copy_attempt"
    PASTE_ATTEMPT = "paste_attempt"
    FULLSCREEN_EXIT = "fullscreen_exit"


class ExamSession(Base):
    """One user's attempt at an exam."""

    __tablename__ = "exam_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    exam_id = Column(Uuid(as_uuid=True), ForeignKey("exams.id"), nullable=False)
    exam_category = Column(
        Enum(ExamCategory, name="exam_category", values_callable=_enum_values),
        nullable=False,
    )  # copied at creation

    status = Column(
        Enum(SessionStatus, name="exam_session_status", values_callable=_enum_values),
        nullable=False,
        default=SessionStatus.ACTIVE,
    )
    finish_reason = Column(
        Enum(FinishReason, name="exam_finish_reason", values_callable=_enum_values),
        nullable=True,
    )

    # Server clock only
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    time_limit_minutes = Column(Integer, nullable=True)  # null = untimed

    # Attempt configuration
    configured_questions = Column(Integer, nullable=True)  # requested count
    total_questions = Column(Integer, nullable=False)  # actual pinned count
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    shuffle_options = Column(Boolean, nullable=False, default=False)
    shuffle_seed = Column(String(64), nullable=False)

    # Monotonic counters
    answered_count = Column(Integer, nullable=False, default=0)
    violation_count = Column(Integer, nullable=False, default=0)

    # Scoring (populated at finalization)
    score = Column(Numeric(5, 2), nullable=True)  # 0.00 to 100.00
    correct_count = Column(Integer, nullable=True)

    invitation_id = Column(Uuid(as_uuid=True), ForeignKey("exam_invitations.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    questions = relationship(
        "SessionQuestion",
        back_populates="session",
        order_by="SessionQuestion.position",
        cascade="all, delete-orphan",
    )
    answers = relationship("ExamAnswer", back_populates="session", cascade="all, delete-orphan")
    violations = relationship(
        "ExamViolation", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_exam_sessions_user_status", "user_id", "status"),
        Index("ix_exam_sessions_exam_user", "exam_id", "user_id"),
    )


class SessionQuestion(Base):
    """Pinned question order for a session (decided once, at creation)."""

    __tablename__ = "exam_session_questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("exam_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)  # 0-based index in session
    question_id = Column(Uuid(as_uuid=True), ForeignKey("questions.id"), nullable=False)

    session = relationship("ExamSession", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("session_id", "position", name="uq_exam_session_question_position"),
        UniqueConstraint("session_id", "question_id", name="uq_exam_session_question_id"),
    )


class ExamAnswer(Base):
    """One answer per (session, question). Never updated after insert."""

    __tablename__ = "exam_answers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("exam_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(Uuid(as_uuid=True), ForeignKey("questions.id"), nullable=False)

    selected_option_id = Column(Uuid(as_uuid=True), nullable=True)
    text_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)  # null = not machine-gradable
    time_spent_seconds = Column(Integer, nullable=False, default=0)  # client claim, informational
    answered_at = Column(DateTime(timezone=True), nullable=False)

    session = relationship("ExamSession", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_exam_answer"),
        Index("ix_exam_answers_session_id", "session_id"),
    )


class ExamViolation(Base):
    """Integrity violation log (append-only)."""

    __tablename__ = "exam_violations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("exam_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    violation_type = Column(
        Enum(ViolationType, name="exam_violation_type", values_callable=_enum_values),
        nullable=False,
    )
    client_ts = Column(DateTime(timezone=True), nullable=False)  # client-reported
    recorded_at = Column(DateTime(timezone=True), nullable=False)  # server clock
    metadata_json = Column(JSON, nullable=True)

    session = relationship("ExamSession", back_populates="violations")

    __table_args__ = (Index("ix_exam_violations_session_ts", "session_id", "recorded_at"),)
