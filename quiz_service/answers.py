"""
Boundary parsing for question definitions and submitted answers.

Options, correct answers and user answers arrive as loosely typed JSON values.
They are turned into the typed shapes below before the scorer sees them, and
any structural problem surfaces here as an ``InvalidStateError`` naming the field.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, assert_never

from shared.errors import InvalidStateError
from .models import QuestionType, QuizQuestion


@dataclass(frozen=True)
class ChoiceKey:
    options: tuple[str, ...]
    correct: frozenset[str]


@dataclass(frozen=True)
class TextKey:
    expected: str


AnswerKey = ChoiceKey | TextKey
Answer = frozenset[str] | str


@dataclass(frozen=True)
class QuestionDefinition:
    question_id: int | None
    question_type: QuestionType
    key: AnswerKey
    points: Decimal


def _string_list(value: Any, field: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidStateError(f"Invalid answer format: {field} must be a list of strings")
    return value


def parse_definition(
    question_type: QuestionType,
    options: Any,
    correct_answer: Any,
    points: Decimal,
    question_id: int | None = None,
) -> QuestionDefinition:
    """Validate an authored question and build its typed answer key."""
    if points is None or points < 0:
        raise InvalidStateError("Points cannot be negative")

    match question_type:
        case QuestionType.MCQ_SINGLE | QuestionType.MCQ_MULTIPLE:
            if not options:
                raise InvalidStateError("Options are required for multiple choice questions")
            opts = _string_list(options, "options")
            if len(set(opts)) != len(opts):
                raise InvalidStateError("Invalid answer format: options must not contain duplicates")
            if isinstance(correct_answer, str):
                correct_answer = [correct_answer]
            correct = frozenset(_string_list(correct_answer, "correct_answer"))
            if not correct:
                raise InvalidStateError("Invalid answer format: correct_answer must name at least one option")
            if question_type is QuestionType.MCQ_SINGLE and len(correct) != 1:
                raise InvalidStateError(
                    "Invalid answer format: correct_answer must name exactly one option for MCQ_SINGLE"
                )
            unknown = correct.difference(opts)
            if unknown:
                raise InvalidStateError(
                    f"Invalid answer format: correct_answer {sorted(unknown)} not found in options"
                )
            key: AnswerKey = ChoiceKey(options=tuple(opts), correct=correct)
        case QuestionType.SHORT_ANSWER:
            if options:
                raise InvalidStateError("Options are not allowed for SHORT_ANSWER questions")
            if not isinstance(correct_answer, str):
                raise InvalidStateError("Invalid answer format: correct_answer must be a string for SHORT_ANSWER")
            key = TextKey(expected=correct_answer)
        case _:
            assert_never(question_type)

    return QuestionDefinition(question_id=question_id, question_type=question_type, key=key, points=points)


def definition_of(question: QuizQuestion) -> QuestionDefinition:
    return parse_definition(
        question.question_type,
        question.options,
        question.correct_answer,
        question.points,
        question_id=question.id,
    )


def parse_answer(question_type: QuestionType, raw: Any, question_id: int | None = None) -> Answer:
    """Normalize a submitted answer to a set of options or a single string."""
    where = f"question {question_id}" if question_id is not None else "user_answer"

    match question_type:
        case QuestionType.MCQ_SINGLE | QuestionType.MCQ_MULTIPLE:
            if isinstance(raw, str):
                return frozenset([raw])
            if isinstance(raw, list) and all(isinstance(v, str) for v in raw):
                return frozenset(raw)
            raise InvalidStateError(f"Invalid answer format for {where}: expected a list of option strings")
        case QuestionType.SHORT_ANSWER:
            if isinstance(raw, str):
                return raw
            if isinstance(raw, list) and len(raw) == 1 and isinstance(raw[0], str):
                return raw[0]
            raise InvalidStateError(f"Invalid answer format for {where}: expected a single string")
        case _:
            assert_never(question_type)


def to_storage(answer: Answer) -> list[str] | str:
    if isinstance(answer, str):
        return answer
    return sorted(answer)
