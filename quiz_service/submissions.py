"""
Submission of answers for an attempt.

A submission is validated in full before the first response row is written,
then scored, aggregated and finalized in one transaction. Finalization goes
through ``attempts.complete`` / ``attempts.timeout``; this module never writes
attempt status itself.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, assert_never

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.errors import AlreadyExistsError, InvalidStateError
from . import attempts
from .answers import Answer, definition_of, parse_answer, to_storage
from .crud import answered_question_ids, get_attempt, get_question, get_quiz, questions_for_quiz, responses_for_attempt
from .models import AttemptStatus, QuizAttempt, QuizQuestion, SubmissionType, UserResponse, utcnow
from .schemas import ResponseIn, ResponseOut, ScoreDetails, SubmissionResult
from .scoring import ShortAnswerMatch, score

logger = logging.getLogger("quiz-service.submissions")

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class _Pending:
    question: QuizQuestion
    answer: Answer


def percentage(total: Decimal, maximum: Decimal) -> Decimal:
    if maximum <= 0:
        return Decimal("0")
    return (total * 100 / maximum).quantize(_CENT, rounding=ROUND_HALF_UP)


Entry = ResponseIn | Sequence[Any]


def _entries(responses: Sequence[Entry] | None) -> list[tuple[int, Any]]:
    # accepts ResponseIn models or plain (question_id, user_answer) pairs
    out = []
    for r in responses or []:
        if isinstance(r, ResponseIn):
            out.append((r.question_id, r.user_answer))
            continue
        if isinstance(r, str) or not isinstance(r, Sequence) or len(r) != 2:
            raise InvalidStateError(f"Invalid response entry {r!r}: expected (question_id, user_answer)")
        question_id, raw = r
        out.append((question_id, raw))
    return out


def _open_attempt(db: Session, attempt_id: int | None) -> QuizAttempt:
    if attempt_id is None:
        raise InvalidStateError("Quiz attempt id is required")
    attempt = get_attempt(db, attempt_id)
    if attempt.status is not AttemptStatus.IN_PROGRESS:
        raise InvalidStateError(f"Quiz attempt is not in progress. Current status: {attempt.status.value}")
    return attempt


def _validate(db: Session, attempt: QuizAttempt, entries: list[tuple[int, Any]]) -> list[_Pending]:
    seen: set[int] = set()
    pending = []
    for question_id, raw in entries:
        if question_id in seen:
            raise AlreadyExistsError(
                f"Question {question_id} appears more than once in the submission for attempt {attempt.id}"
            )
        seen.add(question_id)

        q = get_question(db, question_id)
        if q.quiz_id != attempt.quiz_id:
            raise InvalidStateError(f"Question {question_id} does not belong to quiz {attempt.quiz_id}")
        pending.append(_Pending(question=q, answer=parse_answer(q.question_type, raw, question_id)))

    already = answered_question_ids(db, attempt, seen)
    if already:
        question_id = min(already)
        raise AlreadyExistsError(
            f"User response already exists for user ID: {attempt.user_id}, "
            f"question ID: {question_id}, attempt: {attempt.attempt}"
        )
    return pending


def _persist(
    db: Session, attempt: QuizAttempt, pending: list[_Pending], strategy: ShortAnswerMatch
) -> list[UserResponse]:
    now = utcnow()
    rows = []
    for p in pending:
        outcome = score(definition_of(p.question), p.answer, strategy)
        row = UserResponse(
            user_id=attempt.user_id,
            quiz_id=attempt.quiz_id,
            question_id=p.question.id,
            attempt=attempt.attempt,
            user_answer=to_storage(p.answer),
            is_correct=outcome.is_correct,
            points_earned=outcome.points_earned,
            answered_at=now,
        )
        db.add(row)
        rows.append(row)
    try:
        db.flush()
    except IntegrityError as e:
        # a concurrent submit recorded one of these questions first
        raise AlreadyExistsError(
            f"User response already exists for user ID: {attempt.user_id}, attempt: {attempt.attempt}"
        ) from e
    return rows


def submit(
    db: Session,
    attempt_id: int | None,
    responses: Sequence[Entry] | None,
    submission_type: SubmissionType,
    strategy: ShortAnswerMatch = ShortAnswerMatch.EXACT,
) -> SubmissionResult:
    """
    Score and record ``responses`` for an attempt, then finalize it.

    With no responses nothing is written and the result reflects the answers
    already stored for the attempt; the question universe is then the whole quiz.
    """
    try:
        attempt = _open_attempt(db, attempt_id)

        entries = _entries(responses)
        pending = _validate(db, attempt, entries)
        new_rows = _persist(db, attempt, pending, strategy) if pending else []

        if pending:
            universe = [p.question for p in pending]
        else:
            universe = questions_for_quiz(db, attempt.quiz_id)

        stored = responses_for_attempt(db, attempt)
        total = sum((r.points_earned for r in stored), Decimal("0"))
        correct = sum(1 for r in stored if r.is_correct)
        maximum = sum((q.points for q in universe), Decimal("0"))
        submitted_at = utcnow()

        details = ScoreDetails(
            total_score=total,
            max_possible_score=maximum,
            percentage_score=percentage(total, maximum),
            correct_answers=correct,
            total_questions=len(universe),
            submission_type=submission_type,
            submitted_at=submitted_at,
        )

        match submission_type:
            case SubmissionType.MANUAL:
                finalized = attempts.complete(db, attempt.id, details, commit=False)
            case SubmissionType.AUTO_TIMEOUT:
                finalized = attempts.timeout(db, attempt.id, details, commit=False)
            case _:
                assert_never(submission_type)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Attempt %s submitted (%s): %s new responses, score %s/%s (%s%%)",
        attempt_id, submission_type.value, len(new_rows), details.total_score,
        details.max_possible_score, details.percentage_score,
    )
    view = attempts.attempt_view(finalized, get_quiz(db, finalized.quiz_id).attempts_allowed)
    return SubmissionResult(
        attempt=view,
        responses=[ResponseOut.model_validate(r) for r in new_rows] if new_rows else None,
        total_score=details.total_score,
        max_possible_score=details.max_possible_score,
        correct_answers=details.correct_answers,
        total_questions=details.total_questions,
        percentage_score=details.percentage_score,
        submission_type=submission_type,
        submitted_at=submitted_at,
    )


def submit_on_timeout(
    db: Session,
    attempt_id: int | None,
    responses: Sequence[Entry] | None,
    strategy: ShortAnswerMatch = ShortAnswerMatch.EXACT,
) -> SubmissionResult:
    return submit(db, attempt_id, responses, SubmissionType.AUTO_TIMEOUT, strategy)


def list_responses(db: Session, attempt_id: int) -> list[UserResponse]:
    return responses_for_attempt(db, get_attempt(db, attempt_id))


def save_responses(
    db: Session,
    attempt_id: int | None,
    responses: Sequence[Entry] | None,
    strategy: ShortAnswerMatch = ShortAnswerMatch.EXACT,
) -> list[UserResponse]:
    """
    Record answers while the attempt is still running, without finalizing it.

    Same checks as ``submit``: the whole batch is validated before anything is
    written, and a question already answered in this attempt rejects the batch.
    A later ``submit`` with no responses scores what was saved here.
    """
    try:
        attempt = _open_attempt(db, attempt_id)
        entries = _entries(responses)
        if not entries:
            raise InvalidStateError("User response list cannot be empty")
        rows = _persist(db, attempt, _validate(db, attempt, entries), strategy)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Saved %s responses for attempt %s", len(rows), attempt_id)
    return rows
