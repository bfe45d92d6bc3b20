"""
Quiz attempt lifecycle.

IN_PROGRESS is the only non-terminal status. COMPLETED, ABANDONED and TIMED_OUT
are absorbing, and ``transition`` is the single writer of ``status`` and
``finished_at``.
"""

import logging
from typing import assert_never

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.errors import InvalidStateError
from .crud import attempts_for_user, count_questions, get_attempt, get_quiz
from .models import AttemptStatus, QuizAttempt, utcnow
from .schemas import AttemptView, ScoreDetails

logger = logging.getLogger("quiz-service.attempts")


def attempt_view(attempt: QuizAttempt, attempts_allowed: int) -> AttemptView:
    return AttemptView(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        user_id=attempt.user_id,
        attempt_number=attempt.attempt,
        status=attempt.status,
        started_at=attempt.started_at,
        finished_at=attempt.finished_at,
        score_details=ScoreDetails.model_validate(attempt.score_details) if attempt.score_details else None,
        # the current attempt counts as used, whatever its status
        attempts_left=max(attempts_allowed - attempt.attempt, 0),
    )


def find_active_attempt(db: Session, user_id: int, quiz_id: int) -> QuizAttempt | None:
    stmt = select(QuizAttempt).where(
        QuizAttempt.user_id == user_id,
        QuizAttempt.quiz_id == quiz_id,
        QuizAttempt.status == AttemptStatus.IN_PROGRESS,
    )
    return db.execute(stmt).scalar_one_or_none()


def latest_attempt_number(db: Session, user_id: int, quiz_id: int) -> int:
    stmt = select(func.max(QuizAttempt.attempt)).where(
        QuizAttempt.user_id == user_id,
        QuizAttempt.quiz_id == quiz_id,
    )
    return db.scalar(stmt) or 0


def _create_or_resume_once(db: Session, quiz_id: int, user_id: int) -> AttemptView:
    quiz = get_quiz(db, quiz_id)
    if quiz.questions_to_show and count_questions(db, quiz_id) == 0:
        raise InvalidStateError("Cannot start quiz: No questions available")

    active = find_active_attempt(db, user_id, quiz_id)
    if active:
        logger.info("User %s already has attempt %s in progress for quiz %s, resuming",
                    user_id, active.attempt, quiz_id)
        return attempt_view(active, quiz.attempts_allowed)

    next_number = latest_attempt_number(db, user_id, quiz_id) + 1
    if next_number > quiz.attempts_allowed:
        raise InvalidStateError(
            f"Attempt limit exceeded: quiz {quiz_id} allows {quiz.attempts_allowed} attempt(s)"
        )

    now = utcnow()
    a = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        attempt=next_number,
        status=AttemptStatus.IN_PROGRESS,
        started_at=now,
        finished_at=None,
        created_at=now,
        updated_at=now,
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    logger.info("Created quiz attempt %s (attempt number %s) for user %s on quiz %s",
                a.id, next_number, user_id, quiz_id)
    return attempt_view(a, quiz.attempts_allowed)


def create_or_resume_attempt(db: Session, quiz_id: int, user_id: int, *, retries: int = 3) -> AttemptView:
    """
    Return the user's IN_PROGRESS attempt, or start the next numbered one.

    Two racing callers are kept apart by the unique constraints on
    (user, quiz, attempt) and on the single active attempt. The loser of an
    insert race rolls back and re-reads, which usually resumes the winner's attempt.
    """
    for n in range(1, retries + 1):
        try:
            return _create_or_resume_once(db, quiz_id, user_id)
        except IntegrityError:
            db.rollback()
            if n == retries:
                raise
            logger.warning("Conflict creating attempt for user %s on quiz %s, retrying (%s/%s)",
                           user_id, quiz_id, n, retries)
        except Exception:
            db.rollback()
            raise
    raise RuntimeError("retries must be >= 1")


def _already_finalized(attempt: QuizAttempt, target: AttemptStatus) -> InvalidStateError:
    return InvalidStateError(
        f"Cannot change quiz attempt {attempt.id} to {target.value}: "
        f"attempt already finalized with status {attempt.status.value}"
    )


def transition(
    db: Session,
    attempt_id: int,
    target: AttemptStatus,
    score_details: ScoreDetails | None = None,
    *,
    commit: bool = True,
) -> QuizAttempt:
    match target:
        case AttemptStatus.COMPLETED | AttemptStatus.ABANDONED | AttemptStatus.TIMED_OUT:
            pass
        case AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Cannot move a quiz attempt back to IN_PROGRESS")
        case _:
            assert_never(target)

    try:
        attempt = get_attempt(db, attempt_id)
        if attempt.status.is_terminal:
            raise _already_finalized(attempt, target)

        now = utcnow()
        values = {"status": target, "finished_at": now, "updated_at": now}
        if score_details is not None:
            values["score_details"] = score_details.model_dump(mode="json")

        # compare-and-set: only one finalization can match the IN_PROGRESS row
        result = db.execute(
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt_id, QuizAttempt.status == AttemptStatus.IN_PROGRESS)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(attempt)
        if result.rowcount != 1:
            logger.warning("Lost finalization race for attempt %s (wanted %s, found %s)",
                           attempt_id, target.value, attempt.status.value)
            raise _already_finalized(attempt, target)

        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    logger.info("Quiz attempt %s moved to %s", attempt_id, target.value)
    return attempt


def complete(db: Session, attempt_id: int, score_details: ScoreDetails, *, commit: bool = True) -> QuizAttempt:
    return transition(db, attempt_id, AttemptStatus.COMPLETED, score_details, commit=commit)


def abandon(db: Session, attempt_id: int) -> QuizAttempt:
    return transition(db, attempt_id, AttemptStatus.ABANDONED)


def timeout(
    db: Session, attempt_id: int, score_details: ScoreDetails | None = None, *, commit: bool = True
) -> QuizAttempt:
    return transition(db, attempt_id, AttemptStatus.TIMED_OUT, score_details, commit=commit)


def update_attempt(
    db: Session, attempt_id: int, status: AttemptStatus, score_details: ScoreDetails | None = None
) -> AttemptView:
    a = transition(db, attempt_id, status, score_details)
    return attempt_view(a, get_quiz(db, a.quiz_id).attempts_allowed)


def get_attempt_view(db: Session, attempt_id: int) -> AttemptView:
    a = get_attempt(db, attempt_id)
    return attempt_view(a, get_quiz(db, a.quiz_id).attempts_allowed)


def list_attempts(db: Session, user_id: int, quiz_id: int) -> list[AttemptView]:
    allowed = get_quiz(db, quiz_id).attempts_allowed
    return [attempt_view(a, allowed) for a in attempts_for_user(db, user_id, quiz_id)]
