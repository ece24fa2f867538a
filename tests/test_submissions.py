from datetime import datetime, timedelta, timezone

from app.models.submission import Submission

PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_student_submits_essay(client, seed_data, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "Every action has an equal and opposite reaction."},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "submitted"
    assert body["is_late_submission"] is False
    assert body["grade"] is None


def _stored_submission(db, assignment_id, student_id) -> Submission:
    db.expire_all()
    return (
        db.query(Submission)
        .filter(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
        .one()
    )


def test_submit_twice_is_rejected(client, db, seed_data, student_token):
    url = f"/api/assignments/{seed_data['essay_id']}/submit"
    first = client.post(url, json={"content": "v1"}, headers=auth_header(student_token))
    assert first.status_code == 200
    stored = _stored_submission(db, seed_data["essay_id"], seed_data["student1_id"])
    submitted_at = stored.submitted_at

    second = client.post(url, json={"content": "v2"}, headers=auth_header(student_token))
    assert second.status_code == 400
    assert second.json()["detail"] == "Assignment already submitted"

    stored = _stored_submission(db, seed_data["essay_id"], seed_data["student1_id"])
    assert stored.content == "v1"
    assert stored.status == "submitted"
    assert stored.submitted_at == submitted_at


def test_mcq_resubmit_keeps_first_grade(client, db, seed_data, student_token):
    q1, q2 = seed_data["mcq_question_ids"]
    url = f"/api/assignments/{seed_data['mcq_id']}/submit-mcq"
    first = client.post(url, json={"answers": {str(q1): "Newton", str(q2): "Newton"}}, headers=auth_header(student_token))
    assert first.status_code == 200
    stored = _stored_submission(db, seed_data["mcq_id"], seed_data["student1_id"])
    submitted_at = stored.submitted_at

    second = client.post(url, json={"answers": {str(q1): "Newton", str(q2): "Joule"}}, headers=auth_header(student_token))
    assert second.status_code == 400
    assert second.json()["detail"] == "Assignment already submitted"

    stored = _stored_submission(db, seed_data["mcq_id"], seed_data["student1_id"])
    assert stored.status == "graded"
    assert stored.points == 20
    assert [a["answer"] for a in stored.answers] == ["Newton", "Newton"]
    assert stored.submitted_at == submitted_at


def test_repeated_answers_cannot_inflate_score(client, db, seed_data, student_token):
    q1, _ = seed_data["mcq_question_ids"]
    r = client.post(
        f"/api/assignments/{seed_data['mcq_id']}/submit",
        json={"answers": [{"question_id": q1, "answer": "Newton"}] * 4},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == f"Duplicate answer for question {q1}"

    db.expire_all()
    assert db.query(Submission).filter(Submission.assignment_id == seed_data["mcq_id"]).count() == 0


def test_draft_then_submit(client, seed_data, student_token):
    url = f"/api/assignments/{seed_data['essay_id']}"
    r = client.put(f"{url}/draft", json={"content": "work in progress"}, headers=auth_header(student_token))
    assert r.status_code == 200
    assert r.json()["status"] == "draft"

    r = client.post(f"{url}/submit", json={"content": "final"}, headers=auth_header(student_token))
    assert r.status_code == 200
    assert r.json()["status"] == "submitted"
    assert r.json()["content"] == "final"


def test_deadline_passed_blocks_submission(client, seed_data, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['past_due_id']}/submit",
        json={"content": "too late"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Assignment deadline has passed and late submissions are not allowed"


def test_late_submission_flagged_when_allowed(client, seed_data, teacher_token, student_token):
    r = client.put(
        f"/api/assignments/{seed_data['past_due_id']}",
        json={"allow_late_submission": True},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200

    r = client.post(
        f"/api/assignments/{seed_data['past_due_id']}/submit",
        json={"content": "late but accepted"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    assert r.json()["is_late_submission"] is True


def test_outsider_cannot_submit(client, seed_data):
    token = login(client, "student3@example.com")
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "not my class"},
        headers=auth_header(token),
    )
    assert r.status_code == 403


def test_teacher_cannot_submit(client, seed_data, teacher_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "x"},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 403


def test_mcq_is_auto_graded(client, seed_data, student_token):
    q1, q2 = seed_data["mcq_question_ids"]
    r = client.post(
        f"/api/assignments/{seed_data['mcq_id']}/submit-mcq",
        json={"answers": {str(q1): "Newton", str(q2): "Newton"}, "time_spent": 5},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "MCQ assignment submitted and graded successfully"
    assert body["score"] == 20
    assert body["total_points"] == 50
    assert body["percentage"] == 40
    sub = body["submission"]
    assert sub["status"] == "graded"
    assert sub["grade"]["letter_grade"] == "F"
    assert [a["is_correct"] for a in sub["answers"]] == [True, False]


def test_mcq_endpoint_rejects_other_types(client, seed_data, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit-mcq",
        json={"answers": {}},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "This endpoint is only for MCQ assignments"


def test_mcq_answers_hidden_from_students(client, seed_data, student_token):
    r = client.get(f"/api/assignments/{seed_data['mcq_id']}", headers=auth_header(student_token))
    assert r.status_code == 200
    assert all(q["correct_answer"] is None for q in r.json()["questions"])


def test_teacher_grades_and_returns(client, seed_data, teacher_token, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "answer"},
        headers=auth_header(student_token),
    )
    sub_id = r.json()["id"]

    r = client.put(f"/api/assignments/submissions/{sub_id}/return", headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Only graded submissions can be returned"

    r = client.put(
        f"/api/assignments/submissions/{sub_id}/grade",
        json={"points": 85, "feedback": "Good work", "rubric_scores": [{"criterion": "clarity", "points": 40}]},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200, r.text
    grade = r.json()["grade"]
    assert r.json()["status"] == "graded"
    assert grade["percentage"] == 85
    assert grade["letter_grade"] == "B"
    assert grade["rubric_scores"][0]["criterion"] == "clarity"

    r = client.put(f"/api/assignments/submissions/{sub_id}/return", headers=auth_header(teacher_token))
    assert r.status_code == 200
    assert r.json()["status"] == "returned"

    # returned work stays final for the student
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "again"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400


def test_other_teacher_cannot_grade(client, seed_data, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "answer"},
        headers=auth_header(student_token),
    )
    sub_id = r.json()["id"]

    other = login(client, "teacher2@example.com")
    r = client.put(
        f"/api/assignments/submissions/{sub_id}/grade",
        json={"points": 10},
        headers=auth_header(other),
    )
    assert r.status_code == 403


def test_level_restricted_assignment_hidden(client, seed_data, teacher_token, student_token):
    due = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    r = client.post(
        f"/api/assignments/classroom/{seed_data['classroom_id']}",
        json={
            "title": "Advanced only",
            "description": "Hard problems",
            "due_date": due,
            "target_levels": ["advanced"],
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 201, r.text
    advanced_id = r.json()["id"]

    r = client.get(
        f"/api/assignments/classroom/{seed_data['classroom_id']}",
        headers=auth_header(student_token),
    )
    assert advanced_id not in [a["id"] for a in r.json()]

    r = client.post(
        f"/api/assignments/{advanced_id}/submit",
        json={"content": "trying anyway"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "This assignment is not for your level"

    advanced_student = login(client, "student2@example.com")
    r = client.get(
        f"/api/assignments/classroom/{seed_data['classroom_id']}",
        headers=auth_header(advanced_student),
    )
    assert advanced_id in [a["id"] for a in r.json()]


def test_teacher_list_has_submission_counts(client, seed_data, teacher_token, student_token):
    client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit",
        json={"content": "answer"},
        headers=auth_header(student_token),
    )
    r = client.get(
        f"/api/assignments/classroom/{seed_data['classroom_id']}",
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200
    essay = next(a for a in r.json() if a["id"] == seed_data["essay_id"])
    assert essay["submission_counts"] == {"total": 1, "graded": 0, "pending": 1}


def test_create_mcq_sums_question_points(client, seed_data, teacher_token):
    due = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    r = client.post(
        f"/api/assignments/classroom/{seed_data['classroom_id']}",
        json={
            "title": "Quick quiz",
            "description": "Two questions",
            "type": "mcq",
            "due_date": due,
            "questions": [
                {"question": "a?", "options": ["x", "y"], "correct_answer": "x", "points": 5},
                {"question": "b?", "options": ["x", "y"], "correct_answer": "y", "points": 7},
            ],
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 201
    assert r.json()["total_points"] == 12

    r = client.get(f"/api/classrooms/{seed_data['classroom_id']}", headers=auth_header(teacher_token))
    assert r.json()["total_assignments"] == 4


def test_file_submission_and_attachment_download(client, seed_data, teacher_token, student_token):
    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/attachments",
        files=[("attachments", ("brief.txt", b"read me first", "text/plain"))],
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200, r.text
    att = r.json()["attachments"][0]
    assert att["file_name"] == "brief.txt"

    r = client.get(
        f"/api/assignments/{seed_data['essay_id']}/attachments/{att['id']}/download",
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    assert r.content == b"read me first"

    r = client.post(
        f"/api/assignments/{seed_data['essay_id']}/submit-files",
        files=[("files", ("answer.txt", b"my answer", "text/plain"))],
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "This endpoint is only for file-based assignments"
