"""
Question authoring with dense position maintenance.

Within a quiz, question positions are always exactly 1..N. Every mutation locks
the quiz row and its ordered question set, shifts positions, and commits as one
transaction.
"""

import logging

from sqlalchemy.orm import Session

from shared.errors import InvalidStateError
from .answers import parse_definition
from .crud import get_question, get_quiz, lock_quiz, questions_for_quiz
from .models import QuizQuestion, utcnow

logger = logging.getLogger("quiz-service.questions")


def list_questions(db: Session, quiz_id: int) -> list[QuizQuestion]:
    get_quiz(db, quiz_id)
    return questions_for_quiz(db, quiz_id)


def _validate(payload: dict) -> None:
    parse_definition(
        payload["question_type"],
        payload.get("options"),
        payload["correct_answer"],
        payload["points"],
    )


def _shift(siblings: list[QuizQuestion], old_position: int, new_position: int) -> None:
    now = utcnow()
    if new_position < old_position:
        # moving towards the front: [new, old-1] slide back one slot
        for q in siblings:
            if new_position <= q.position < old_position:
                q.position += 1
                q.updated_at = now
    else:
        # moving towards the back: (old, new] slide forward one slot
        for q in siblings:
            if old_position < q.position <= new_position:
                q.position -= 1
                q.updated_at = now


def _move(db: Session, question: QuizQuestion, new_position: int) -> None:
    questions = questions_for_quiz(db, question.quiz_id, for_update=True)
    count = len(questions)
    if new_position < 1 or new_position > count:
        raise InvalidStateError(f"Position must be between 1 and {count}")

    old_position = question.position
    if new_position == old_position:
        return

    siblings = [q for q in questions if q.id != question.id]
    _shift(siblings, old_position, new_position)
    question.position = new_position
    question.updated_at = utcnow()
    logger.info("Moved question %s in quiz %s from position %s to %s",
                question.id, question.quiz_id, old_position, new_position)


def append_question(db: Session, quiz_id: int, payload: dict) -> QuizQuestion:
    try:
        lock_quiz(db, quiz_id)
        _validate(payload)
        count = len(questions_for_quiz(db, quiz_id, for_update=True))
        q = QuizQuestion(quiz_id=quiz_id, position=count + 1, **payload)
        db.add(q)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(q)
    logger.info("Appended question %s to quiz %s at position %s", q.id, quiz_id, q.position)
    return q


def reposition_question(db: Session, question_id: int, new_position: int) -> QuizQuestion:
    try:
        q = get_question(db, question_id)
        lock_quiz(db, q.quiz_id)
        db.refresh(q)
        _move(db, q, new_position)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(q)
    return q


def update_question(db: Session, question_id: int, payload: dict) -> QuizQuestion:
    """Replace a question's content; a differing ``position`` also moves it."""
    new_position = payload.pop("position", None)
    try:
        q = get_question(db, question_id)
        lock_quiz(db, q.quiz_id)
        db.refresh(q)
        _validate(payload)
        if new_position is not None:
            _move(db, q, new_position)
        for field, value in payload.items():
            setattr(q, field, value)
        q.updated_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(q)
    logger.info("Updated question %s", question_id)
    return q


def delete_question(db: Session, question_id: int) -> None:
    try:
        q = get_question(db, question_id)
        quiz_id = q.quiz_id
        lock_quiz(db, quiz_id)
        db.refresh(q)
        deleted_position = q.position
        db.delete(q)
        db.flush()

        now = utcnow()
        for sibling in questions_for_quiz(db, quiz_id, for_update=True):
            if sibling.position > deleted_position:
                sibling.position -= 1
                sibling.updated_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted question %s from quiz %s (position %s) and compacted the rest",
                question_id, quiz_id, deleted_position)
