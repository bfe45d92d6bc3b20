from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from shared.config import Settings
from shared.database import db_dependency
from . import attempts, pool, questions, submissions
from .crud import create_quiz, get_question, get_quiz, list_quizzes
from .models import SubmissionType
from .schemas import (
    AttemptQuestionOut, AttemptUpdateIn, AttemptView,
    QuestionCreateIn, QuestionOut, QuestionUpdateIn, RepositionIn,
    QuizCreateIn, QuizOut,
    ResponseOut, SaveResponsesIn, SubmissionResult, SubmitQuizIn,
)
from .scoring import ShortAnswerMatch


def build_router(SessionLocal, settings: Settings) -> APIRouter:
    router = APIRouter()
    get_db = db_dependency(SessionLocal)
    strategy = ShortAnswerMatch.from_setting(settings.short_answer_match)

    def current_user_id(request: Request, x_user_id: str | None = Header(default=None)) -> int:
        # the gateway forwards the verified subject as X-User-ID
        user = getattr(request.state, "user", None)
        raw = user.get("sub") if isinstance(user, dict) and user.get("sub") else x_user_id
        try:
            return int(str(raw).strip())
        except (TypeError, ValueError):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing or invalid user identity")

    # -------------------------
    # Quizzes
    # -------------------------

    @router.post("/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
    def create_q(payload: QuizCreateIn, db: Session = Depends(get_db)):
        return create_quiz(db, payload.model_dump())

    @router.get("/quizzes", response_model=list[QuizOut])
    def list_qz(include_inactive: bool = False, db: Session = Depends(get_db)):
        return list_quizzes(db, include_inactive)

    @router.get("/quizzes/{quiz_id}", response_model=QuizOut)
    def get_qz(quiz_id: int, db: Session = Depends(get_db)):
        return get_quiz(db, quiz_id)

    # -------------------------
    # Questions
    # -------------------------

    @router.get("/quizzes/{quiz_id}/questions", response_model=list[QuestionOut])
    def get_qs(quiz_id: int, db: Session = Depends(get_db)):
        return questions.list_questions(db, quiz_id)

    @router.post("/quizzes/{quiz_id}/questions", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
    def add_q(quiz_id: int, payload: QuestionCreateIn, db: Session = Depends(get_db)):
        return questions.append_question(db, quiz_id, payload.model_dump())

    @router.get("/questions/{question_id}", response_model=QuestionOut)
    def get_q(question_id: int, db: Session = Depends(get_db)):
        return get_question(db, question_id)

    @router.put("/questions/{question_id}", response_model=QuestionOut)
    def put_q(question_id: int, payload: QuestionUpdateIn, db: Session = Depends(get_db)):
        return questions.update_question(db, question_id, payload.model_dump())

    @router.put("/questions/{question_id}/position", response_model=QuestionOut)
    def move_q(question_id: int, payload: RepositionIn, db: Session = Depends(get_db)):
        return questions.reposition_question(db, question_id, payload.position)

    @router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_q(question_id: int, db: Session = Depends(get_db)):
        questions.delete_question(db, question_id)

    # -------------------------
    # Attempts
    # -------------------------

    @router.post("/quizzes/{quiz_id}/attempts", response_model=AttemptView)
    def start(quiz_id: int, db: Session = Depends(get_db), uid: int = Depends(current_user_id)):
        return attempts.create_or_resume_attempt(db, quiz_id, uid, retries=settings.attempt_create_retries)

    @router.get("/quizzes/{quiz_id}/attempts", response_model=list[AttemptView])
    def my_attempts(quiz_id: int, db: Session = Depends(get_db), uid: int = Depends(current_user_id)):
        return attempts.list_attempts(db, uid, quiz_id)

    @router.get("/attempts/{attempt_id}", response_model=AttemptView)
    def get_a(attempt_id: int, db: Session = Depends(get_db)):
        return attempts.get_attempt_view(db, attempt_id)

    @router.patch("/attempts/{attempt_id}", response_model=AttemptView)
    def patch_a(attempt_id: int, payload: AttemptUpdateIn, db: Session = Depends(get_db)):
        return attempts.update_attempt(db, attempt_id, payload.status, payload.score_details)

    @router.post("/attempts/{attempt_id}/abandon", response_model=AttemptView)
    def abandon_a(attempt_id: int, db: Session = Depends(get_db)):
        a = attempts.abandon(db, attempt_id)
        return attempts.attempt_view(a, get_quiz(db, a.quiz_id).attempts_allowed)

    @router.post("/attempts/{attempt_id}/timeout", response_model=AttemptView)
    def timeout_a(attempt_id: int, db: Session = Depends(get_db)):
        a = attempts.timeout(db, attempt_id)
        return attempts.attempt_view(a, get_quiz(db, a.quiz_id).attempts_allowed)

    @router.get("/attempts/{attempt_id}/responses", response_model=list[ResponseOut])
    def get_responses(attempt_id: int, db: Session = Depends(get_db)):
        return submissions.list_responses(db, attempt_id)

    @router.post("/attempts/{attempt_id}/responses", response_model=list[ResponseOut],
                 status_code=status.HTTP_201_CREATED)
    def save_responses(attempt_id: int, payload: SaveResponsesIn, db: Session = Depends(get_db)):
        return submissions.save_responses(db, attempt_id, payload.responses, strategy)

    @router.get("/attempts/{attempt_id}/questions", response_model=list[AttemptQuestionOut])
    def attempt_questions(attempt_id: int, db: Session = Depends(get_db)):
        return pool.questions_for_attempt(db, attempt_id)

    # -------------------------
    # Submission
    # -------------------------

    @router.post("/attempts/{attempt_id}/submit", response_model=SubmissionResult)
    def submit(attempt_id: int, payload: SubmitQuizIn, db: Session = Depends(get_db)):
        return submissions.submit(db, attempt_id, payload.responses, SubmissionType.MANUAL, strategy)

    @router.post("/attempts/{attempt_id}/submit/timeout", response_model=SubmissionResult)
    def submit_timeout(attempt_id: int, payload: SubmitQuizIn, db: Session = Depends(get_db)):
        return submissions.submit_on_timeout(db, attempt_id, payload.responses, strategy)

    return router
