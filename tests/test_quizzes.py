import random
from datetime import datetime, timedelta, timezone

from app.models.post import Post
from app.models.quiz import Quiz, QuizSession
from app.services.quizzes import build_session_questions, risk_score

PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _quiz_payload(seed_data, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "classroom_id": seed_data["classroom_id"],
        "title": "Friday quiz",
        "scheduled_start_time": (now + timedelta(minutes=5)).isoformat(),
        "scheduled_end_time": (now + timedelta(hours=2)).isoformat(),
        "duration": 30,
        "questions": [
            {
                "question": "2 + 2?",
                "options": [{"text": "4", "is_correct": True}, {"text": "5"}],
                "points": 2,
            },
            {
                "question": "Pick the primes",
                "options": [
                    {"text": "2", "is_correct": True},
                    {"text": "3", "is_correct": True},
                    {"text": "4"},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


def _create_quiz(client, seed_data, teacher_token, **overrides) -> dict:
    r = client.post("/api/quizzes", json=_quiz_payload(seed_data, **overrides), headers=auth_header(teacher_token))
    assert r.status_code == 201, r.text
    return r.json()


def _open(db, quiz_id: int, end_in_minutes: int = 120) -> None:
    """Move the window so the quiz is running now."""
    now = datetime.now(timezone.utc)
    quiz = db.get(Quiz, quiz_id)
    quiz.scheduled_start_time = now - timedelta(minutes=1)
    quiz.scheduled_end_time = now + timedelta(minutes=end_in_minutes)
    db.commit()


def _start(client, quiz_id: int, token: str) -> dict:
    r = client.post(f"/api/quizzes/{quiz_id}/sessions", headers=auth_header(token))
    assert r.status_code == 201, r.text
    return r.json()["session"]


def _answer(client, session_id: int, token: str, index: int, selected: list[str]):
    return client.post(
        f"/api/quizzes/sessions/{session_id}/answers",
        json={"question_index": index, "selected_options": selected},
        headers=auth_header(token),
    )


def _rewind_session(db, session_id: int, hours: int = 3) -> None:
    session = db.get(QuizSession, session_id)
    session.started_at = datetime.now(timezone.utc) - timedelta(hours=hours)
    db.commit()


def test_create_quiz_totals_points_and_announces(client, db, seed_data, teacher_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    assert quiz["total_points"] == 3
    assert quiz["status"] == "scheduled"
    assert quiz["total_students_invited"] == 2
    assert quiz["proctoring_settings"]["allowed_tab_switches"] == 3

    titles = [p.title for p in db.query(Post).filter(Post.classroom_id == seed_data["classroom_id"])]
    assert "Quiz scheduled: Friday quiz" in titles


def test_create_validates_window_and_questions(client, seed_data, teacher_token):
    now = datetime.now(timezone.utc)
    headers = auth_header(teacher_token)

    r = client.post(
        "/api/quizzes",
        json=_quiz_payload(seed_data, scheduled_start_time=(now - timedelta(minutes=1)).isoformat()),
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Quiz start time must be in the future"

    r = client.post(
        "/api/quizzes",
        json=_quiz_payload(seed_data, scheduled_end_time=(now + timedelta(minutes=1)).isoformat()),
        headers=headers,
    )
    assert r.json()["detail"] == "Quiz end time must be after start time"

    payload = _quiz_payload(seed_data)
    payload["questions"][1]["options"] = [{"text": "2", "is_correct": True}]
    r = client.post("/api/quizzes", json=payload, headers=headers)
    assert r.json()["detail"] == "Question 2 must have a question text and at least 2 options"

    payload = _quiz_payload(seed_data)
    payload["questions"][0]["options"][0]["is_correct"] = False
    r = client.post("/api/quizzes", json=payload, headers=headers)
    assert r.json()["detail"] == "Question 1 must have at least one correct answer"

    r = client.post("/api/quizzes", json=_quiz_payload(seed_data, questions=[]), headers=headers)
    assert r.json()["detail"] == "Quiz must have at least one question"


def test_only_classroom_teacher_creates(client, seed_data):
    other = login(client, "teacher2@example.com")
    r = client.post("/api/quizzes", json=_quiz_payload(seed_data), headers=auth_header(other))
    assert r.status_code == 403


def test_cannot_start_outside_window_or_classroom(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    r = client.post(f"/api/quizzes/{quiz['id']}/sessions", headers=auth_header(student_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Quiz is not available for attempt at this time"

    _open(db, quiz["id"])
    outsider = login(client, "student3@example.com")
    r = client.post(f"/api/quizzes/{quiz['id']}/sessions", headers=auth_header(outsider))
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied to this quiz"


def test_full_attempt_is_scored(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])

    session = _start(client, quiz["id"], student_token)
    assert len(session["questions"]) == 2
    assert all(not o["is_correct"] for q in session["questions"] for o in q["options"])
    assert 0 < session["time_left"] <= 30 * 60

    assert _answer(client, session["id"], student_token, 0, ["4"]).status_code == 200
    assert _answer(client, session["id"], student_token, 1, ["3", "2"]).status_code == 200

    r = client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["score"] == 3
    assert body["percentage"] == 100
    assert body["letter_grade"] == "A"
    assert body["passed"] is True


def test_partial_multi_select_scores_nothing(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)

    _answer(client, session["id"], student_token, 0, ["4"])
    _answer(client, session["id"], student_token, 1, ["2"])
    r = client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))
    body = r.json()
    assert body["score"] == 2
    assert body["percentage"] == 66.67
    assert body["letter_grade"] == "D"
    assert body["passed"] is True


def test_repeated_answer_replaces_previous(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)

    for _ in range(3):
        _answer(client, session["id"], student_token, 0, ["4"])
    r = client.put(
        f"/api/quizzes/sessions/{session['id']}/answers",
        json={"answers": {"0": ["4"], "1": ["4"]}},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200, r.text
    assert r.json()["answers_count"] == 2

    r = client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))
    assert r.json()["score"] == 2

    stored = db.get(QuizSession, session["id"])
    assert sorted(a["question_index"] for a in stored.answers) == [0, 1]


def test_unknown_question_index_is_rejected(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)
    r = _answer(client, session["id"], student_token, 7, ["4"])
    assert r.status_code == 400
    assert r.json()["detail"] == "Question 7 is not part of this quiz"


def test_one_open_session_and_attempt_limit(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)

    r = client.post(f"/api/quizzes/{quiz['id']}/sessions", headers=auth_header(student_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "You already have an active session for this quiz"

    client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))
    r = client.post(f"/api/quizzes/{quiz['id']}/sessions", headers=auth_header(student_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Maximum attempts (1) reached for this quiz"


def test_answer_after_time_limit_auto_submits(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"], end_in_minutes=300)
    session = _start(client, quiz["id"], student_token)
    _answer(client, session["id"], student_token, 0, ["4"])
    _rewind_session(db, session["id"])

    r = _answer(client, session["id"], student_token, 1, ["2", "3"])
    assert r.status_code == 400
    assert r.json()["detail"] == "Session has expired and been automatically submitted"

    db.expire_all()
    stored = db.get(QuizSession, session["id"])
    assert stored.status == "submitted"
    assert stored.points_earned == 2
    assert stored.time_spent == 30 * 60

    r = client.get(f"/api/quizzes/{quiz['id']}/sessions/current", headers=auth_header(student_token))
    assert r.status_code == 404


def test_current_session_submits_when_time_is_up(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"], end_in_minutes=300)
    session = _start(client, quiz["id"], student_token)

    r = client.get(f"/api/quizzes/{quiz['id']}/sessions/current", headers=auth_header(student_token))
    assert r.status_code == 200
    assert r.json()["message"] is None

    _rewind_session(db, session["id"])
    r = client.get(f"/api/quizzes/{quiz['id']}/sessions/current", headers=auth_header(student_token))
    body = r.json()
    assert body["message"] == "Session automatically submitted due to time limit"
    assert body["session"]["status"] == "submitted"
    assert body["time_remaining"] == 0


def test_critical_violations_terminate_session(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)
    url = f"/api/quizzes/sessions/{session['id']}/violations"
    violation = {"type": "multiple_faces", "severity": "critical", "description": "Two faces in frame"}

    r = client.post(url, json=violation, headers=auth_header(student_token))
    body = r.json()
    assert body["terminated"] is False
    assert body["risk_score"] == 50
    assert body["warning"] is not None

    r = client.post(url, json=violation, headers=auth_header(student_token))
    body = r.json()
    assert body["terminated"] is True
    assert body["violation_count"] == 2

    details = client.get(f"/api/quizzes/sessions/{session['id']}/details", headers=auth_header(teacher_token)).json()
    assert details["status"] == "flagged"
    assert details["review_status"] == "needs_manual_review"
    assert len(details["violations"]) == 2

    # the session is closed, so further answers find nothing
    r = _answer(client, session["id"], student_token, 0, ["4"])
    assert r.status_code == 404


def test_high_risk_submission_is_flagged_for_review(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)
    headers = auth_header(student_token)

    r = client.put(
        f"/api/quizzes/sessions/{session['id']}/proctoring",
        json={"face_detected": False, "multiple_faces_detected": True},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    r = client.post(
        f"/api/quizzes/sessions/{session['id']}/violations",
        json={"type": "tab_switch", "severity": "medium", "description": "Left the tab"},
        headers=headers,
    )
    assert r.json()["risk_score"] == 80
    assert r.json()["terminated"] is False

    r = client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=headers)
    assert r.json()["risk_score"] == 80

    r = client.get(
        f"/api/quizzes/classroom/{seed_data['classroom_id']}/sessions/review",
        params={"status": "needs_review", "risk_level": "high"},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200, r.text
    sessions = r.json()["sessions"]
    assert [s["id"] for s in sessions] == [session["id"]]
    assert sessions[0]["status"] == "flagged"
    assert sessions[0]["student_name"] == "Student One"


def test_results_follow_quiz_visibility(client, db, seed_data, teacher_token, student_token):
    hidden = _create_quiz(client, seed_data, teacher_token)
    shown = _create_quiz(client, seed_data, teacher_token, title="Open book", show_results=True, allow_review=True)
    ids = {}
    for quiz in (hidden, shown):
        _open(db, quiz["id"])
        session = _start(client, quiz["id"], student_token)
        r = client.get(f"/api/quizzes/sessions/{session['id']}/results", headers=auth_header(student_token))
        assert r.status_code == 404
        _answer(client, session["id"], student_token, 0, ["4"])
        client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))
        ids[quiz["id"]] = session["id"]

    body = client.get(f"/api/quizzes/sessions/{ids[hidden['id']]}/results", headers=auth_header(student_token)).json()
    assert body["score"] is None
    assert body["answers"] is None

    body = client.get(f"/api/quizzes/sessions/{ids[shown['id']]}/results", headers=auth_header(student_token)).json()
    assert body["score"] == 2
    assert body["answers"][0]["is_correct"] is True
    assert body["questions"][0]["options"][0]["is_correct"] is True


def test_review_decisions(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _open(db, quiz["id"])
    session = _start(client, quiz["id"], student_token)
    url = f"/api/quizzes/sessions/{session['id']}/review"

    r = client.post(url, json={"decision": "accept"}, headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot review a session that is still in progress"

    _answer(client, session["id"], student_token, 0, ["4"])
    client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))

    other = login(client, "teacher2@example.com")
    r = client.post(url, json={"decision": "accept"}, headers=auth_header(other))
    assert r.status_code == 403
    assert r.json()["detail"] == "Only the quiz creator can review this session"

    r = client.post(url, json={"decision": "partial_credit", "score_adjustment": 150}, headers=auth_header(teacher_token))
    assert r.status_code == 200, r.text
    assert r.json()["session"]["final_score"] == 100
    assert r.json()["session"]["status"] == "completed"

    r = client.post(url, json={"decision": "reject", "notes": "Copied"}, headers=auth_header(teacher_token))
    assert r.json()["session"]["final_score"] == 0
    assert r.json()["session"]["status"] == "flagged"

    details = client.get(f"/api/quizzes/sessions/{session['id']}/details", headers=auth_header(teacher_token)).json()
    assert details["review_status"] == "approved"
    assert details["final_decision"] == "reject"
    assert details["passed"] is False


def test_update_and_delete_rules(client, db, seed_data, teacher_token, student_token):
    headers = auth_header(teacher_token)
    quiz = _create_quiz(client, seed_data, teacher_token)

    r = client.put(f"/api/quizzes/{quiz['id']}", json={"title": "Renamed", "questions": _quiz_payload(seed_data)["questions"][:1]}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["title"] == "Renamed"
    assert r.json()["total_points"] == 2

    _open(db, quiz["id"])
    r = client.put(f"/api/quizzes/{quiz['id']}", json={"title": "Again"}, headers=headers)
    assert r.json()["detail"] == "Cannot update an active quiz"
    r = client.delete(f"/api/quizzes/{quiz['id']}", headers=headers)
    assert r.json()["detail"] == "Cannot delete an active quiz. Please end it first."

    session = _start(client, quiz["id"], student_token)
    client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=auth_header(student_token))

    stored = db.get(Quiz, quiz["id"])
    stored.scheduled_end_time = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.commit()
    r = client.put(f"/api/quizzes/{quiz['id']}", json={"title": "Again"}, headers=headers)
    assert r.json()["detail"] == "Cannot update an ended quiz"

    r = client.delete(f"/api/quizzes/{quiz['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["outcome"] == "cancelled"

    fresh = _create_quiz(client, seed_data, teacher_token, title="Never run")
    r = client.delete(f"/api/quizzes/{fresh['id']}", headers=headers)
    assert r.json()["outcome"] == "deleted"
    assert client.get(f"/api/quizzes/{fresh['id']}", headers=headers).status_code == 404


def test_student_listing_filters(client, db, seed_data, teacher_token, student_token):
    quiz = _create_quiz(client, seed_data, teacher_token)
    _create_quiz(client, seed_data, teacher_token, title="Later quiz")
    _open(db, quiz["id"])
    base = f"/api/quizzes/classroom/{seed_data['classroom_id']}"
    headers = auth_header(student_token)

    body = client.get(base, params={"status": "available"}, headers=headers).json()
    assert [q["id"] for q in body["quizzes"]] == [quiz["id"]]
    assert body["quizzes"][0]["questions"] == []
    assert body["pagination"]["total_records"] == 1

    active = client.get(f"{base}/active", headers=headers).json()
    assert [q["id"] for q in active] == [quiz["id"]]

    session = _start(client, quiz["id"], student_token)
    body = client.get(base, params={"status": "attempted"}, headers=headers).json()
    assert [q["id"] for q in body["quizzes"]] == [quiz["id"]]

    client.post(f"/api/quizzes/sessions/{session['id']}/submit", headers=headers)
    body = client.get(base, params={"status": "completed"}, headers=headers).json()
    item = body["quizzes"][0]
    assert item["user_attempts"] == 1
    assert item["can_attempt"] is False
    # scores stay hidden unless the quiz shows results
    assert item["last_attempt"]["percentage"] is None

    mine = client.get(f"{base}/sessions/mine", headers=headers).json()
    assert [s["id"] for s in mine] == [session["id"]]

    outsider = login(client, "student3@example.com")
    assert client.get(base, headers=auth_header(outsider)).status_code == 403


def test_risk_score_combines_violations_and_signals():
    violations = [{"severity": "low"}, {"severity": "high"}]
    assert risk_score(violations, {}) == 35
    assert risk_score([], {"tab_switches": 6, "look_away_count": 11}) == 35
    assert risk_score([], {"tab_switches": 5, "face_detected": True}) == 0
    assert risk_score([{"severity": "critical"}] * 3, {}) == 100


def test_session_questions_keep_their_original_index():
    quiz = Quiz(
        questions=[
            {"question": f"Q{i}", "options": [{"text": "a", "is_correct": True}, {"text": "b"}]}
            for i in range(5)
        ],
        shuffle_questions=True,
        shuffle_options=True,
    )
    snapshot = build_session_questions(quiz, random.Random(7))
    assert sorted(q["question_index"] for q in snapshot) == list(range(5))
    for q in snapshot:
        assert q["question"] == f"Q{q['question_index']}"
        assert q["points"] == 1
        assert {o["text"] for o in q["options"]} == {"a", "b"}
