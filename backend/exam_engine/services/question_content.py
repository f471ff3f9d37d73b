"""Decoded question content as shown to candidates and in result breakdowns."""

import hashlib
import random
from typing import Any

from exam_engine.core.codec import TextCodec, get_question_codec
from exam_engine.models.exam import Question, QuestionOption, QuestionType


def option_order(question: Question, shuffle_seed: str, shuffle: bool) -> list[QuestionOption]:
    """
    Options in presentation order.

    The shuffled order is a pure function of (session seed, question id), so
    repeated reads within a session always return the same order.
    """
    options = sorted(question.options, key=lambda o: o.order_index)
    if not shuffle:
        return options
    seed = hashlib.sha256(f"{shuffle_seed}:{question.id}".encode()).hexdigest()
    rng = random.Random(seed)
    shuffled = options.copy()
    rng.shuffle(shuffled)
    return shuffled


def correct_option(question: Question) -> QuestionOption | None:
    """First option flagged correct, by defined order."""
    for option in sorted(question.options, key=lambda o: o.order_index):
        if option.is_correct:
            return option
    return None


def format_question_for_candidate(
    question: Question,
    shuffle_seed: str,
    shuffle_options: bool,
    codec: TextCodec | None = None,
) -> dict[str, Any]:
    """Question payload without answer key or explanation."""
    codec = codec or get_question_codec()
    return {
        "id": question.id,
        "question_type": QuestionType(question.question_type).value,
        "question_text": codec.decode(question.question_text),
        "question_image": question.question_image,
        "points": question.points,
        "time_limit_seconds": question.time_limit_seconds,
        "options": [
            {
                "id": option.id,
                "option_text": codec.decode(option.option_text),
                "option_image": option.option_image,
            }
            for option in option_order(question, shuffle_seed, shuffle_options)
        ],
    }


def decode_explanation(question: Question, codec: TextCodec | None = None) -> str | None:
    if question.explanation is None:
        return None
    codec = codec or get_question_codec()
    return codec.decode(question.explanation)
