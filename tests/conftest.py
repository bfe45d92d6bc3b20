from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from shared.config import Settings
from shared.database import init_db, make_engine, make_session_factory
from quiz_service.crud import create_quiz
from quiz_service.main import create_app
from quiz_service.models import QuestionType
from quiz_service.questions import append_question


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_quiz(db):
    def _make(**fields):
        payload = {"title": "Sample quiz", "description": "", "attempts_allowed": 1}
        payload.update(fields)
        return create_quiz(db, payload)

    return _make


def question_payload(question_type=QuestionType.MCQ_SINGLE, **fields):
    payload = {
        "question_text": "Pick one",
        "question_type": question_type,
        "options": ["A", "B", "C"],
        "correct_answer": ["A"],
        "points": Decimal("1"),
        "explanation": "",
        "required": True,
    }
    if question_type is QuestionType.SHORT_ANSWER:
        payload.update(question_text="Type it", options=None, correct_answer="blue")
    payload.update(fields)
    return payload


@pytest.fixture
def add_question(db):
    def _add(quiz_id, question_type=QuestionType.MCQ_SINGLE, **fields):
        return append_question(db, quiz_id, question_payload(question_type, **fields))

    return _add


@pytest.fixture
def scored_quiz(make_quiz, add_question):
    """One attempt allowed; Q1 MCQ_SINGLE {"A"} and Q2 SHORT_ANSWER "blue", 5 points each."""
    quiz = make_quiz(attempts_allowed=1)
    q1 = add_question(quiz.id, QuestionType.MCQ_SINGLE, points=Decimal("5"))
    q2 = add_question(quiz.id, QuestionType.SHORT_ANSWER, points=Decimal("5"))
    return quiz, q1, q2


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", log_level="WARNING")


@pytest.fixture
def client(settings, engine):
    app = create_app(settings, engine=engine)
    with TestClient(app) as c:
        yield c
