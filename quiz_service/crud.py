from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shared.errors import NotFoundError
from .models import Quiz, QuizAttempt, QuizQuestion, UserResponse


# -------------------------
# Quiz lookup
# -------------------------

def create_quiz(db: Session, payload: dict) -> Quiz:
    q = Quiz(**payload)
    db.add(q)
    db.commit()
    db.refresh(q)
    return q


def list_quizzes(db: Session, include_inactive: bool = False) -> list[Quiz]:
    stmt = select(Quiz).order_by(Quiz.id.asc())
    if not include_inactive:
        stmt = stmt.where(Quiz.is_active.is_(True))
    return list(db.execute(stmt).scalars())


def get_quiz(db: Session, quiz_id: int) -> Quiz:
    q = db.get(Quiz, quiz_id)
    if not q:
        raise NotFoundError(f"Quiz not found with ID: {quiz_id}")
    return q


def lock_quiz(db: Session, quiz_id: int) -> Quiz:
    """Row-lock the quiz; serializes writers of its question set."""
    stmt = select(Quiz).where(Quiz.id == quiz_id).with_for_update().execution_options(populate_existing=True)
    q = db.execute(stmt).scalar_one_or_none()
    if not q:
        raise NotFoundError(f"Quiz not found with ID: {quiz_id}")
    return q


# -------------------------
# Question lookup
# -------------------------

def get_question(db: Session, question_id: int) -> QuizQuestion:
    q = db.get(QuizQuestion, question_id)
    if not q:
        raise NotFoundError(f"Question not found with ID: {question_id}")
    return q


def questions_for_quiz(db: Session, quiz_id: int, *, for_update: bool = False) -> list[QuizQuestion]:
    stmt = select(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id).order_by(QuizQuestion.position.asc())
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return list(db.execute(stmt).scalars())


def count_questions(db: Session, quiz_id: int) -> int:
    return db.scalar(select(func.count()).select_from(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id)) or 0


# -------------------------
# Attempts / responses
# -------------------------

def get_attempt(db: Session, attempt_id: int) -> QuizAttempt:
    a = db.get(QuizAttempt, attempt_id)
    if not a:
        raise NotFoundError(f"Quiz attempt not found with ID: {attempt_id}")
    return a


def attempts_for_user(db: Session, user_id: int, quiz_id: int) -> list[QuizAttempt]:
    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
        .order_by(QuizAttempt.attempt.desc())
    )
    return list(db.execute(stmt).scalars())


def responses_for_attempt(db: Session, attempt: QuizAttempt) -> list[UserResponse]:
    stmt = (
        select(UserResponse)
        .where(
            UserResponse.user_id == attempt.user_id,
            UserResponse.quiz_id == attempt.quiz_id,
            UserResponse.attempt == attempt.attempt,
        )
        .order_by(UserResponse.id.asc())
    )
    return list(db.execute(stmt).scalars())


def answered_question_ids(db: Session, attempt: QuizAttempt, question_ids: set[int]) -> set[int]:
    if not question_ids:
        return set()
    stmt = select(UserResponse.question_id).where(
        UserResponse.user_id == attempt.user_id,
        UserResponse.quiz_id == attempt.quiz_id,
        UserResponse.attempt == attempt.attempt,
        UserResponse.question_id.in_(question_ids),
    )
    return set(db.execute(stmt).scalars())
