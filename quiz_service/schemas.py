from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import AttemptStatus, QuestionType, SubmissionType


# -------------------------
# Quiz
# -------------------------

class QuizCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    attempts_allowed: int = Field(default=1, ge=1)
    time_limit: int | None = Field(default=None, ge=1, description="Minutes; enforced by the caller")
    questions_to_show: int | None = Field(default=None, ge=1)
    randomize_questions: bool = False
    is_active: bool = True


class QuizOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    attempts_allowed: int
    time_limit: int | None
    questions_to_show: int | None
    randomize_questions: bool
    is_active: bool


# -------------------------
# Questions
# -------------------------

class QuestionCreateIn(BaseModel):
    question_text: str = Field(min_length=1)
    question_type: QuestionType
    options: list[str] | None = None
    correct_answer: list[str] | str
    points: Decimal = Field(default=Decimal("1"), ge=0, max_digits=7, decimal_places=2)
    explanation: str = ""
    required: bool = True


class QuestionUpdateIn(QuestionCreateIn):
    position: int | None = None


class RepositionIn(BaseModel):
    position: int


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    question_text: str
    question_type: QuestionType
    options: list[str] | None
    correct_answer: list[str] | str
    points: Decimal
    explanation: str
    required: bool
    position: int


class AttemptQuestionOut(BaseModel):
    """A question as shown to the user taking an attempt; no answer key."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    question_type: QuestionType
    options: list[str] | None
    points: Decimal
    required: bool
    position: int


# -------------------------
# Attempts
# -------------------------

class ScoreDetails(BaseModel):
    """Summary written onto an attempt when it is finalized."""

    total_score: Decimal = Decimal("0")
    max_possible_score: Decimal = Decimal("0")
    percentage_score: Decimal = Decimal("0")
    correct_answers: int = 0
    total_questions: int = 0
    submission_type: SubmissionType | None = None
    submitted_at: datetime | None = None


class AttemptUpdateIn(BaseModel):
    status: AttemptStatus
    score_details: ScoreDetails | None = None


class AttemptView(BaseModel):
    attempt_id: int
    quiz_id: int
    user_id: int
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    finished_at: datetime | None = None
    score_details: ScoreDetails | None = None
    attempts_left: int


# -------------------------
# Submission
# -------------------------

class ResponseIn(BaseModel):
    question_id: int = Field(gt=0)
    user_answer: Any = Field(description="List of option strings for MCQ, a string for SHORT_ANSWER")


class SubmitQuizIn(BaseModel):
    responses: list[ResponseIn] | None = None


class SaveResponsesIn(BaseModel):
    responses: list[ResponseIn] = Field(min_length=1)


class ResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    quiz_id: int
    question_id: int
    attempt: int
    user_answer: list[str] | str
    is_correct: bool
    points_earned: Decimal
    answered_at: datetime


class SubmissionResult(BaseModel):
    attempt: AttemptView
    responses: list[ResponseOut] | None = None
    total_score: Decimal
    max_possible_score: Decimal
    correct_answers: int
    total_questions: int
    percentage_score: Decimal
    submission_type: SubmissionType
    submitted_at: datetime
