"""
Question pool: which of a quiz's questions an attempt is shown.

``questions_to_show`` caps the pool (10 when unset). Randomized quizzes draw a
random sample; otherwise attempts walk the position-ordered question list in
consecutive windows, wrapping around, so successive attempts see different
questions first. Attempt 1 of a 15-question quiz showing 10 gets positions
1-10, attempt 2 gets 11-15 then 1-5.
"""

import logging
import random
from collections.abc import Sequence

from sqlalchemy.orm import Session

from shared.errors import NotFoundError
from .crud import get_attempt, get_quiz, questions_for_quiz
from .models import QuizQuestion

logger = logging.getLogger("quiz-service.pool")

DEFAULT_QUESTIONS_TO_SHOW = 10


def questions_to_show(setting: int | None, available: int) -> int:
    if setting is not None and setting > 0:
        return min(setting, available)
    return min(DEFAULT_QUESTIONS_TO_SHOW, available)


def round_robin(questions: Sequence[QuizQuestion], count: int, attempt_number: int) -> list[QuizQuestion]:
    total = len(questions)
    start = (attempt_number - 1) * count % total
    return [questions[(start + i) % total] for i in range(count)]


def select(
    questions: Sequence[QuizQuestion],
    setting: int | None,
    attempt_number: int,
    randomize: bool,
    rng: random.Random,
) -> list[QuizQuestion]:
    count = questions_to_show(setting, len(questions))
    if randomize:
        return rng.sample(list(questions), count)
    if count >= len(questions):
        return list(questions)
    return round_robin(questions, count, attempt_number)


def questions_for_attempt(db: Session, attempt_id: int) -> list[QuizQuestion]:
    attempt = get_attempt(db, attempt_id)
    quiz = get_quiz(db, attempt.quiz_id)
    questions = questions_for_quiz(db, quiz.id)
    if not questions:
        raise NotFoundError(f"No questions found for quiz {quiz.id}")

    # seeded by attempt so a randomized pool is stable across reads
    rng = random.Random(attempt.id)
    selected = select(questions, quiz.questions_to_show, attempt.attempt, quiz.randomize_questions, rng)
    logger.info("Attempt %s of quiz %s: showing %s of %s questions (randomized=%s)",
                attempt.id, quiz.id, len(selected), len(questions), quiz.randomize_questions)
    return selected
