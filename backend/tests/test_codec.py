"""Tests for the question text codec."""

import json
import uuid

import pytest
from cryptography.fernet import Fernet

from exam_engine.core import codec as codec_module
from exam_engine.core.codec import CodecError, FernetTextCodec, PlainTextCodec, get_question_codec


def test_fernet_codec_stores_json_envelope() -> None:
    codec = FernetTextCodec(Fernet.generate_key().decode())

    stored = codec.encode("Which organ filters blood?")
    envelope = json.loads(stored)

    assert envelope["v"] == 1
    assert envelope["alg"] == "fernet"
    assert "filters" not in stored
    assert codec.decode(stored) == "Which organ filters blood?"


def test_fernet_codec_passes_legacy_plaintext_through() -> None:
    codec = FernetTextCodec(Fernet.generate_key())
    assert codec.decode("Plain legacy text") == "Plain legacy text"
    assert codec.decode('{"not": "an envelope"}') == '{"not": "an envelope"}'


def test_fernet_codec_rejects_foreign_ciphertext() -> None:
    stored = FernetTextCodec(Fernet.generate_key()).encode("secret")
    with pytest.raises(CodecError):
        FernetTextCodec(Fernet.generate_key()).decode(stored)


def test_default_codec_follows_configuration(monkeypatch) -> None:
    monkeypatch.setattr(codec_module.settings, "QUESTION_ENCRYPTION_KEY", None)
    codec_module.set_question_codec(None)
    assert isinstance(get_question_codec(), PlainTextCodec)

    monkeypatch.setattr(
        codec_module.settings, "QUESTION_ENCRYPTION_KEY", Fernet.generate_key().decode()
    )
    codec_module.set_question_codec(None)
    assert isinstance(get_question_codec(), FernetTextCodec)


@pytest.mark.asyncio
async def test_session_serves_decrypted_text(db, clock, student, examiner, monkeypatch) -> None:
    from exam_engine.core.authorization import UserAuthorizationContext
    from exam_engine.models.exam import Question
    from exam_engine.schemas.session import ExamSessionCreate
    from exam_engine.services.session_lifecycle import create_session, get_question
    from tests.helpers.seed import create_test_exam

    codec_module.set_question_codec(FernetTextCodec(Fernet.generate_key()))
    exam = create_test_exam(db, examiner, num_questions=1)
    auth = UserAuthorizationContext(student)
    session = await create_session(db, auth, ExamSessionCreate(exam_id=exam.id))

    payload = await get_question(db, auth, session.id, 0)

    assert payload["question"]["question_text"] == "Question 1"
    assert [o["option_text"] for o in payload["question"]["options"]] == ["A", "B", "C", "D"]
    stored = db.get(Question, uuid.UUID(str(payload["question"]["id"]))).question_text
    assert stored != "Question 1"
