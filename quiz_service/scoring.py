import enum
import logging
import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal
from typing import assert_never

from .answers import Answer, ChoiceKey, QuestionDefinition, TextKey

logger = logging.getLogger("quiz-service.scoring")

_WHITESPACE = re.compile(r"\s+")


class ShortAnswerMatch(str, enum.Enum):
    EXACT = "EXACT"
    TRIMMED = "TRIMMED"
    CASE_INSENSITIVE = "CASE_INSENSITIVE"
    NORMALIZED = "NORMALIZED"

    @classmethod
    def from_setting(cls, value: str) -> "ShortAnswerMatch":
        try:
            return cls(value.strip().upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise RuntimeError(f"Unknown SHORT_ANSWER_MATCH {value!r}; expected one of: {allowed}")


def _canonical(text: str, strategy: ShortAnswerMatch) -> str:
    match strategy:
        case ShortAnswerMatch.EXACT:
            return text
        case ShortAnswerMatch.TRIMMED:
            return text.strip()
        case ShortAnswerMatch.CASE_INSENSITIVE:
            return text.strip().casefold()
        case ShortAnswerMatch.NORMALIZED:
            return _WHITESPACE.sub(" ", unicodedata.normalize("NFKC", text).strip().casefold())
        case _:
            assert_never(strategy)


def texts_match(submitted: str, expected: str, strategy: ShortAnswerMatch = ShortAnswerMatch.EXACT) -> bool:
    return _canonical(submitted, strategy) == _canonical(expected, strategy)


@dataclass(frozen=True)
class ScoreOutcome:
    is_correct: bool
    points_earned: Decimal


def score(
    question: QuestionDefinition,
    answer: Answer,
    strategy: ShortAnswerMatch = ShortAnswerMatch.EXACT,
) -> ScoreOutcome:
    """
    Binary scoring: full points on a correct answer, zero otherwise.

    MCQ answers are correct only on exact set equality with the key, so partial
    selections and supersets both score zero. Short answers are compared with
    the configured ``strategy``.
    """
    key = question.key
    match key:
        case ChoiceKey():
            is_correct = isinstance(answer, frozenset) and answer == key.correct
        case TextKey():
            is_correct = isinstance(answer, str) and texts_match(answer, key.expected, strategy)
        case _:
            assert_never(key)

    points = question.points if is_correct else Decimal("0")
    logger.debug("Scored question %s (%s): correct=%s points=%s",
                 question.question_id, question.question_type.value, is_correct, points)
    return ScoreOutcome(is_correct=is_correct, points_earned=points)
