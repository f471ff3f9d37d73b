"""Tests for answer recording, grading and practice feedback."""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from exam_engine.core.app_exceptions import AppError
from exam_engine.core.authorization import UserAuthorizationContext
from exam_engine.models.exam import ExamCategory, Question, QuestionType
from exam_engine.models.session import ExamAnswer, ExamSession
from exam_engine.schemas.session import AnswerSubmit, ExamSessionCreate
from exam_engine.services.answer_recorder import grade_answer, submit_answer
from exam_engine.services.session_lifecycle import create_session, pinned_question_ids
from tests.helpers.seed import add_question_to_exam, create_test_exam, create_test_question


def ctx(user) -> UserAuthorizationContext:
    return UserAuthorizationContext(user)


async def start(db, user, exam, **kwargs) -> ExamSession:
    return await create_session(db, ctx(user), ExamSessionCreate(exam_id=exam.id, **kwargs))


def options_of(db, question_id) -> list:
    return sorted(db.get(Question, question_id).options, key=lambda o: o.order_index)


@pytest.mark.asyncio
async def test_practice_answer_gets_feedback_and_duplicates_are_rejected(
    db, clock, student, examiner
) -> None:
    """Practice: option #2 of 4 is correct; feedback says so; a resubmission is rejected."""
    exam = create_test_exam(db, examiner, category=ExamCategory.PRACTICE, num_questions=1)
    session = await start(db, student, exam)
    question_id = pinned_question_ids(db, session)[0]
    option_2 = options_of(db, question_id)[1]
    assert option_2.is_correct

    result = await submit_answer(
        db,
        ctx(student),
        session.id,
        AnswerSubmit(question_id=question_id, selected_option_id=option_2.id, time_spent_seconds=12),
    )

    assert result["accepted"] is True
    assert result["answered_count"] == 1
    assert result["feedback"]["is_correct"] is True
    assert result["feedback"]["correct_option_id"] == option_2.id
    assert result["feedback"]["explanation"] == "Explanation 1"

    wrong = options_of(db, question_id)[0]
    with pytest.raises(AppError) as exc_info:
        await submit_answer(
            db,
            ctx(student),
            session.id,
            AnswerSubmit(question_id=question_id, selected_option_id=wrong.id),
        )
    assert exc_info.value.code == "ALREADY_ANSWERED"
    assert exc_info.value.status_code == 409

    stored = db.query(ExamAnswer).filter(ExamAnswer.session_id == session.id).all()
    assert len(stored) == 1
    assert stored[0].selected_option_id == option_2.id
    db.refresh(session)
    assert session.answered_count == 1


@pytest.mark.asyncio
async def test_scored_categories_get_no_feedback(db, clock, student, examiner) -> None:
    exam = create_test_exam(db, examiner, category=ExamCategory.TEST, duration_minutes=30)
    session = await start(db, student, exam)
    question_id = pinned_question_ids(db, session)[0]

    result = await submit_answer(
        db,
        ctx(student),
        session.id,
        AnswerSubmit(question_id=question_id, selected_option_id=options_of(db, question_id)[1].id),
    )
    assert result["accepted"] is True
    assert result["feedback"] is None


@pytest.mark.asyncio
async def test_question_must_be_pinned_and_option_must_belong(
    db, clock, student, examiner
) -> None:
    exam = create_test_exam(db, examiner, num_questions=3)
    session = await start(db, student, exam, question_count=2)
    pinned = pinned_question_ids(db, session)

    with pytest.raises(AppError) as exc_info:
        await submit_answer(db, ctx(student), session.id, AnswerSubmit(question_id=uuid.uuid4()))
    assert exc_info.value.code == "QUESTION_NOT_IN_SESSION"

    foreign_option = options_of(db, pinned[1])[0]
    with pytest.raises(AppError) as exc_info:
        await submit_answer(
            db,
            ctx(student),
            session.id,
            AnswerSubmit(question_id=pinned[0], selected_option_id=foreign_option.id),
        )
    assert exc_info.value.code == "INVALID_OPTION"
    assert exc_info.value.details == {"field": "selected_option_id"}


@pytest.mark.asyncio
async def test_essay_answers_are_ungraded(db, clock, student, examiner) -> None:
    exam = create_test_exam(db, examiner, num_questions=0)
    essay = create_test_question(
        db, examiner, text="Discuss.", question_type=QuestionType.ESSAY, explanation="Model answer"
    )
    add_question_to_exam(db, exam, essay, 0)
    session = await start(db, student, exam)

    result = await submit_answer(
        db,
        ctx(student),
        session.id,
        AnswerSubmit(question_id=essay.id, text_answer="  My long answer.  "),
    )

    assert result["feedback"]["is_correct"] is None
    stored = db.query(ExamAnswer).filter(ExamAnswer.session_id == session.id).one()
    assert stored.is_correct is None
    assert stored.text_answer == "My long answer."


@pytest.mark.asyncio
async def test_other_users_cannot_answer(db, clock, student, other_student, examiner) -> None:
    exam = create_test_exam(db, examiner)
    session = await start(db, student, exam)
    question_id = pinned_question_ids(db, session)[0]

    with pytest.raises(AppError) as exc_info:
        await submit_answer(db, ctx(other_student), session.id, AnswerSubmit(question_id=question_id))
    assert exc_info.value.code == "INVALID_SESSION"


def test_store_enforces_one_answer_per_question(db, clock, student, examiner) -> None:
    """The unique constraint, not the application check, is the final guard."""
    exam = create_test_exam(db, examiner, num_questions=1)
    session = ExamSession(
        user_id=student.id,
        exam_id=exam.id,
        exam_category=exam.category,
        started_at=clock.now,
        total_questions=1,
        shuffle_seed="seed",
    )
    db.add(session)
    db.commit()
    question_id = exam.exam_questions[0].question_id

    db.add(ExamAnswer(session_id=session.id, question_id=question_id, answered_at=clock.now))
    db.commit()
    db.add(ExamAnswer(session_id=session.id, question_id=question_id, answered_at=clock.now))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_grade_answer_rules(db, examiner) -> None:
    mcq = create_test_question(db, examiner, correct_index=2)
    essay = create_test_question(db, examiner, question_type=QuestionType.ESSAY)
    options = sorted(mcq.options, key=lambda o: o.order_index)

    assert grade_answer(mcq, options[2].id) is True
    assert grade_answer(mcq, options[0].id) is False
    assert grade_answer(mcq, None) is None
    assert grade_answer(essay, None) is None
