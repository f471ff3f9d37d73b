"""Question text codec: encrypted-at-rest storage for question content."""

import json
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from exam_engine.core.config import settings
from exam_engine.core.logging import get_logger

logger = get_logger(__name__)

ENVELOPE_VERSION = 1
ENVELOPE_ALG = "fernet"


class CodecError(ValueError):
    """Stored text could not be decoded."""


class TextCodec(Protocol):
    def encode(self, plaintext: str) -> str: ...

    def decode(self, stored: str) -> str: ...


class PlainTextCodec:
    """Identity codec used when no encryption key is configured."""

    def encode(self, plaintext: str) -> str:
        return plaintext

    def decode(self, stored: str) -> str:
        return stored


def _parse_envelope(stored: str) -> dict | None:
    if not stored.startswith("{"):
        return None
    try:
        data = json.loads(stored)
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("alg") == ENVELOPE_ALG and "data" in data:
        return data
    return None


class FernetTextCodec:
    """
    Fernet codec storing a JSON envelope: {"v": 1, "alg": "fernet", "data": "<token>"}.

    Values that are not an envelope are returned unchanged so rows written
    before encryption was enabled keep working.
    """

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encode(self, plaintext: str) -> str:
        token = self._fernet.encrypt(plaintext.encode()).decode()
        return json.dumps({"v": ENVELOPE_VERSION, "alg": ENVELOPE_ALG, "data": token})

    def decode(self, stored: str) -> str:
        envelope = _parse_envelope(stored)
        if envelope is None:
            return stored
        try:
            return self._fernet.decrypt(envelope["data"].encode()).decode()
        except InvalidToken as e:
            raise CodecError("Stored question text could not be decrypted") from e


_codec: TextCodec | None = None


def get_question_codec() -> TextCodec:
    """Codec for question/option/explanation text, built from QUESTION_ENCRYPTION_KEY."""
    global _codec
    if _codec is None:
        if settings.QUESTION_ENCRYPTION_KEY:
            _codec = FernetTextCodec(settings.QUESTION_ENCRYPTION_KEY)
        else:
            logger.info("QUESTION_ENCRYPTION_KEY not set; question text stored as plaintext")
            _codec = PlainTextCodec()
    return _codec


def set_question_codec(codec: TextCodec | None) -> None:
    """Replace the process-wide codec (None resets to the configured default)."""
    global _codec
    _codec = codec
