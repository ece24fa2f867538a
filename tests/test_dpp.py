PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _mcq_payload(seed_data, **overrides) -> dict:
    payload = {
        "title": "Kinematics practice",
        "classroom_id": seed_data["classroom_id"],
        "video_class_id": seed_data["video_class_id"],
        "type": "mcq",
        "questions": [
            {
                "question": "2 + 2?",
                "options": [{"text": "4", "is_correct": True}, {"text": "5"}],
                "marks": 2,
                "difficulty": "easy",
            },
            {
                "question": "Speed unit?",
                "options": [{"text": "m/s", "is_correct": True}, {"text": "kg"}],
                "difficulty": "hard",
            },
        ],
    }
    payload.update(overrides)
    return payload


def _create_mcq(client, seed_data, teacher_token) -> dict:
    r = client.post("/api/dpp", json=_mcq_payload(seed_data), headers=auth_header(teacher_token))
    assert r.status_code == 201, r.text
    return r.json()


def test_create_mcq_dpp_computes_max_score(client, seed_data, teacher_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    assert dpp["max_score"] == 3
    assert dpp["is_published"] is True
    assert dpp["due_date"] is not None


def test_create_rejects_missing_difficulty(client, seed_data, teacher_token):
    payload = _mcq_payload(seed_data)
    payload["questions"][1]["difficulty"] = "extreme"
    r = client.post("/api/dpp", json=payload, headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Each MCQ question must have a valid difficulty level (easy, medium, hard)"


def test_create_requires_own_video_class(client, seed_data):
    other = login(client, "teacher2@example.com")
    r = client.post("/api/dpp", json=_mcq_payload(seed_data), headers=auth_header(other))
    assert r.status_code == 404


def test_student_sees_questions_without_answers(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    r = client.get(f"/api/dpp/{dpp['id']}", headers=auth_header(student_token))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["has_submitted"] is False
    assert all(not o["is_correct"] for q in body["questions"] for o in q["options"])


def test_mcq_submission_is_scored_once(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    url = f"/api/dpp/{dpp['id']}/submit/mcq"
    answers = {"answers": [
        {"question_index": 0, "selected_option": "4"},
        {"question_index": 1, "selected_option": "kg"},
    ]}

    r = client.post(url, json=answers, headers=auth_header(student_token))
    assert r.status_code == 200, r.text
    assert r.json()["score"] == 2
    assert r.json()["max_score"] == 3
    assert r.json()["is_late"] is False

    r = client.post(url, json=answers, headers=auth_header(student_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "You have already submitted this DPP"

    r = client.get(f"/api/dpp/{dpp['id']}/my-submission", headers=auth_header(student_token))
    assert r.status_code == 200
    detail = r.json()
    assert detail["student_name"] == "Student One"
    assert [a["is_correct"] for a in detail["detailed_answers"]] == [True, False]
    assert [a["earned_marks"] for a in detail["detailed_answers"]] == [2, 0]


def test_repeated_question_index_is_rejected(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    url = f"/api/dpp/{dpp['id']}/submit/mcq"
    r = client.post(
        url,
        json={"answers": [{"question_index": 0, "selected_option": "4"}] * 5},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Duplicate answer for question index 0"

    # the rejected attempt does not count as a submission
    r = client.post(
        url,
        json={"answers": [{"question_index": 0, "selected_option": "4"}]},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    assert r.json()["score"] == 2
    assert r.json()["score"] <= r.json()["max_score"]


def test_unpublished_dpp_is_hidden_and_closed(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    r = client.patch(f"/api/dpp/{dpp['id']}/publish", headers=auth_header(teacher_token))
    assert r.json()["is_published"] is False

    r = client.get(f"/api/dpp/{dpp['id']}", headers=auth_header(student_token))
    assert r.status_code == 404

    r = client.get(f"/api/dpp/classroom/{seed_data['classroom_id']}", headers=auth_header(student_token))
    assert r.json()["dpps"] == []

    r = client.get(f"/api/dpp/classroom/{seed_data['classroom_id']}", headers=auth_header(teacher_token))
    assert [d["id"] for d in r.json()["dpps"]] == [dpp["id"]]

    r = client.post(
        f"/api/dpp/{dpp['id']}/submit/mcq",
        json={"answers": [{"question_index": 0, "selected_option": "4"}]},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "This DPP is not published"


def test_questions_locked_after_submission(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    client.post(
        f"/api/dpp/{dpp['id']}/submit/mcq",
        json={"answers": [{"question_index": 0, "selected_option": "4"}]},
        headers=auth_header(student_token),
    )
    r = client.put(
        f"/api/dpp/{dpp['id']}",
        json={"questions": _mcq_payload(seed_data)["questions"][:1]},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot modify question type or content after submissions have been made"

    r = client.put(f"/api/dpp/{dpp['id']}", json={"title": "Renamed"}, headers=auth_header(teacher_token))
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"


def test_file_dpp_submit_and_grade(client, seed_data, teacher_token, student_token):
    r = client.post(
        "/api/dpp",
        json={
            "title": "Write-up",
            "classroom_id": seed_data["classroom_id"],
            "video_class_id": seed_data["video_class_id"],
            "type": "file",
            "assignment_files": [
                {"file_name": "sheet.pdf", "file_url": "https://files.example.com/sheet.pdf", "difficulty": "medium", "points": 20},
            ],
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 201, r.text
    dpp = r.json()
    assert dpp["max_score"] == 20
    file_id = dpp["assignment_files"][0]["id"]

    r = client.post(
        f"/api/dpp/{dpp['id']}/submit/files",
        files=[("files", ("answer.exe", b"nope", "application/octet-stream"))],
        headers=auth_header(student_token),
    )
    assert r.status_code == 400

    r = client.post(
        f"/api/dpp/{dpp['id']}/submit/files",
        files=[("files", ("answer.pdf", b"%PDF-1.4 answer", "application/pdf"))],
        data={"assignment_file_ids": [str(file_id)]},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200, r.text
    sub = r.json()
    assert sub["score"] == 0
    assert sub["file_submissions"][0]["assignment_file_id"] == file_id
    assert sub["file_submissions"][0]["difficulty"] == "medium"

    url = f"/api/dpp/{dpp['id']}/submissions/{sub['id']}/grade"
    r = client.put(url, json={"score": 25}, headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Score must be between 0 and 20"

    r = client.put(url, json={"score": 15, "feedback": "Neat"}, headers=auth_header(teacher_token))
    assert r.status_code == 200
    assert r.json()["score"] == 15
    assert r.json()["graded_by"] == seed_data["teacher_id"]


def test_student_cannot_view_peer_submission(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    r = client.post(
        f"/api/dpp/{dpp['id']}/submit/mcq",
        json={"answers": [{"question_index": 0, "selected_option": "4"}]},
        headers=auth_header(student_token),
    )
    sub_id = r.json()["id"]

    peer = login(client, "student2@example.com")
    r = client.get(f"/api/dpp/{dpp['id']}/submissions/{sub_id}", headers=auth_header(peer))
    assert r.status_code == 403
    assert r.json()["detail"] == "You can only view your own submission"


def test_analytics(client, seed_data, teacher_token, student_token):
    dpp = _create_mcq(client, seed_data, teacher_token)
    client.post(
        f"/api/dpp/{dpp['id']}/submit/mcq",
        json={"answers": [
            {"question_index": 0, "selected_option": "4"},
            {"question_index": 1, "selected_option": "m/s"},
        ]},
        headers=auth_header(student_token),
    )
    r = client.get(f"/api/dpp/{dpp['id']}/analytics", headers=auth_header(teacher_token))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total_students"] == 2
    assert body["submission_count"] == 1
    assert body["submission_rate"] == 50
    assert body["average_score"] == 3
    assert body["difficulty_distribution"] == {"easy": 1, "medium": 0, "hard": 1}
    assert body["overall_difficulty"] == "hard"


def test_outsider_cannot_list_classroom_dpps(client, seed_data):
    outsider = login(client, "student3@example.com")
    r = client.get(f"/api/dpp/classroom/{seed_data['classroom_id']}", headers=auth_header(outsider))
    assert r.status_code == 404
    assert r.json()["detail"] == "Classroom not found or you do not have access"
