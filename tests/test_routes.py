from decimal import Decimal

import pytest

USER = {"X-User-ID": "21"}


@pytest.fixture
def quiz_id(client):
    r = client.post("/quiz/quizzes", json={"title": "Colours", "attempts_allowed": 1})
    assert r.status_code == 201
    return r.json()["id"]


@pytest.fixture
def question_ids(client, quiz_id):
    q1 = client.post(f"/quiz/quizzes/{quiz_id}/questions", json={
        "question_text": "Pick A",
        "question_type": "MCQ_SINGLE",
        "options": ["A", "B"],
        "correct_answer": ["A"],
        "points": 5,
    })
    q2 = client.post(f"/quiz/quizzes/{quiz_id}/questions", json={
        "question_text": "Sky colour?",
        "question_type": "SHORT_ANSWER",
        "correct_answer": "blue",
        "points": 5,
    })
    assert q1.status_code == q2.status_code == 201
    return q1.json()["id"], q2.json()["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").status_code == 200


def test_unknown_quiz_is_404(client):
    r = client.get("/quiz/quizzes/999")
    assert r.status_code == 404
    assert r.json() == {"detail": "Quiz not found with ID: 999"}


def test_invalid_question_is_400(client, quiz_id):
    r = client.post(f"/quiz/quizzes/{quiz_id}/questions", json={
        "question_text": "Pick",
        "question_type": "MCQ_SINGLE",
        "options": ["A", "B"],
        "correct_answer": ["C"],
    })
    assert r.status_code == 400
    assert "not found in options" in r.json()["detail"]


def test_reposition_and_delete(client, quiz_id, question_ids):
    q1, q2 = question_ids
    r = client.put(f"/quiz/questions/{q2}/position", json={"position": 1})
    assert r.status_code == 200
    assert r.json()["position"] == 1

    listed = client.get(f"/quiz/quizzes/{quiz_id}/questions").json()
    assert [(q["id"], q["position"]) for q in listed] == [(q2, 1), (q1, 2)]

    assert client.put(f"/quiz/questions/{q1}/position", json={"position": 3}).status_code == 400

    assert client.delete(f"/quiz/questions/{q2}").status_code == 204
    listed = client.get(f"/quiz/quizzes/{quiz_id}/questions").json()
    assert [(q["id"], q["position"]) for q in listed] == [(q1, 1)]


def test_attempt_requires_identity(client, quiz_id):
    assert client.post(f"/quiz/quizzes/{quiz_id}/attempts").status_code == 401


def test_full_flow(client, quiz_id, question_ids):
    q1, q2 = question_ids

    started = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER)
    assert started.status_code == 200
    attempt = started.json()
    assert attempt["status"] == "IN_PROGRESS"
    assert attempt["attempt_number"] == 1

    resumed = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()
    assert resumed["attempt_id"] == attempt["attempt_id"]

    r = client.post(f"/quiz/attempts/{attempt['attempt_id']}/submit", json={"responses": [
        {"question_id": q1, "user_answer": ["A"]},
        {"question_id": q2, "user_answer": "blue"},
    ]})
    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["total_score"]) == Decimal("10")
    assert Decimal(body["percentage_score"]) == Decimal("100")
    assert body["correct_answers"] == 2
    assert body["attempt"]["status"] == "COMPLETED"
    assert body["submission_type"] == "MANUAL"

    responses = client.get(f"/quiz/attempts/{attempt['attempt_id']}/responses").json()
    assert sorted(r["question_id"] for r in responses) == sorted([q1, q2])

    again = client.post(f"/quiz/attempts/{attempt['attempt_id']}/submit", json={"responses": []})
    assert again.status_code == 400
    assert again.json()["detail"] == "Quiz attempt is not in progress. Current status: COMPLETED"

    limited = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER)
    assert limited.status_code == 400
    assert limited.json()["detail"].startswith("Attempt limit exceeded")

    history = client.get(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()
    assert [a["attempt_number"] for a in history] == [1]


def test_duplicate_response_is_409(client, quiz_id, question_ids):
    q1, _ = question_ids
    attempt_id = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()["attempt_id"]
    r = client.post(f"/quiz/attempts/{attempt_id}/submit", json={"responses": [
        {"question_id": q1, "user_answer": ["A"]},
        {"question_id": q1, "user_answer": ["B"]},
    ]})
    assert r.status_code == 409
    assert client.get(f"/quiz/attempts/{attempt_id}").json()["status"] == "IN_PROGRESS"


def test_timeout_submission(client, quiz_id, question_ids):
    attempt_id = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()["attempt_id"]
    r = client.post(f"/quiz/attempts/{attempt_id}/submit/timeout", json={})
    assert r.status_code == 200
    body = r.json()
    assert body["responses"] is None
    assert body["total_questions"] == 2
    assert body["submission_type"] == "AUTO_TIMEOUT"
    assert body["attempt"]["status"] == "TIMED_OUT"
    assert body["attempt"]["score_details"]["submission_type"] == "AUTO_TIMEOUT"


def test_abandon_then_patch_is_rejected(client, quiz_id, question_ids):
    attempt_id = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()["attempt_id"]
    r = client.post(f"/quiz/attempts/{attempt_id}/abandon")
    assert r.status_code == 200
    assert r.json()["status"] == "ABANDONED"
    assert r.json()["attempts_left"] == 0

    r = client.patch(f"/quiz/attempts/{attempt_id}", json={"status": "COMPLETED"})
    assert r.status_code == 400
    assert "already finalized with status ABANDONED" in r.json()["detail"]


def test_saved_answers_count_on_timeout(client, quiz_id, question_ids):
    q1, q2 = question_ids
    attempt_id = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()["attempt_id"]

    saved = client.post(f"/quiz/attempts/{attempt_id}/responses", json={"responses": [
        {"question_id": q1, "user_answer": ["A"]},
    ]})
    assert saved.status_code == 201
    assert saved.json()[0]["is_correct"] is True
    assert client.get(f"/quiz/attempts/{attempt_id}").json()["status"] == "IN_PROGRESS"

    again = client.post(f"/quiz/attempts/{attempt_id}/responses", json={"responses": [
        {"question_id": q1, "user_answer": ["B"]},
    ]})
    assert again.status_code == 409

    assert client.post(f"/quiz/attempts/{attempt_id}/responses", json={"responses": []}).status_code == 422

    body = client.post(f"/quiz/attempts/{attempt_id}/submit/timeout", json={}).json()
    assert Decimal(body["total_score"]) == Decimal("5")
    assert Decimal(body["percentage_score"]) == Decimal("50")
    assert body["attempt"]["status"] == "TIMED_OUT"


def test_attempt_questions_hide_the_answer_key(client, quiz_id, question_ids):
    attempt_id = client.post(f"/quiz/quizzes/{quiz_id}/attempts", headers=USER).json()["attempt_id"]
    r = client.get(f"/quiz/attempts/{attempt_id}/questions")
    assert r.status_code == 200
    shown = r.json()
    assert [q["id"] for q in shown] == list(question_ids)
    assert all("correct_answer" not in q for q in shown)


def test_quiz_listing_skips_inactive(client, quiz_id):
    retired = client.post("/quiz/quizzes", json={"title": "Old", "is_active": False}).json()["id"]
    assert [q["id"] for q in client.get("/quiz/quizzes").json()] == [quiz_id]
    listed = client.get("/quiz/quizzes", params={"include_inactive": "true"}).json()
    assert [q["id"] for q in listed] == [quiz_id, retired]
