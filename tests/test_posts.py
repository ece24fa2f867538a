PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _post(client, seed_data, token, **fields) -> dict:
    payload = {"content": "Hello class"}
    payload.update(fields)
    r = client.post(
        f"/api/posts/classroom/{seed_data['classroom_id']}",
        json=payload,
        headers=auth_header(token),
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_create_and_list_posts(client, seed_data, teacher_token, student_token):
    _post(client, seed_data, teacher_token, type="announcement", title="Welcome")
    pinned = _post(client, seed_data, student_token, content="Question about homework")
    r = client.put(f"/api/posts/{pinned['id']}/pin", headers=auth_header(teacher_token))
    assert r.json() == {"is_pinned": True}

    r = client.get(f"/api/posts/classroom/{seed_data['classroom_id']}", headers=auth_header(student_token))
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"]["total_records"] == 2
    assert body["posts"][0]["id"] == pinned["id"]
    assert body["posts"][0]["author_name"] == "Student One"

    r = client.get(f"/api/classrooms/{seed_data['classroom_id']}", headers=auth_header(teacher_token))
    assert r.json()["total_posts"] == 2


def test_students_blocked_when_posting_disabled(client, seed_data, teacher_token, student_token):
    r = client.put(
        f"/api/classrooms/{seed_data['classroom_id']}",
        json={"allow_student_posts": False},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 200

    r = client.post(
        f"/api/posts/classroom/{seed_data['classroom_id']}",
        json={"content": "Can I post?"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Students are not allowed to post in this classroom"


def test_level_targeted_post_visibility(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token, content="Advanced reading", target_levels=["advanced"])

    r = client.get(f"/api/posts/classroom/{seed_data['classroom_id']}", headers=auth_header(student_token))
    assert post["id"] not in [p["id"] for p in r.json()["posts"]]

    advanced = login(client, "student2@example.com")
    r = client.get(f"/api/posts/classroom/{seed_data['classroom_id']}", headers=auth_header(advanced))
    assert post["id"] in [p["id"] for p in r.json()["posts"]]


def test_teacher_only_post_hidden_from_students(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token, visibility="teachers")
    r = client.get(f"/api/posts/classroom/{seed_data['classroom_id']}", headers=auth_header(student_token))
    assert post["id"] not in [p["id"] for p in r.json()["posts"]]


def test_like_toggles(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token)
    url = f"/api/posts/{post['id']}/like"

    r = client.post(url, headers=auth_header(student_token))
    assert r.json() == {"liked": True, "like_count": 1}

    r = client.post(url, headers=auth_header(student_token))
    assert r.json() == {"liked": False, "like_count": 0}


def test_view_counts_and_comments(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token)

    r = client.post(
        f"/api/posts/{post['id']}/comments",
        json={"content": "First!"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 201, r.text
    comment = r.json()

    r = client.post(
        f"/api/posts/{post['id']}/comments",
        json={"content": "Welcome", "parent_comment_id": comment["id"]},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 201
    assert r.json()["parent_comment_id"] == comment["id"]

    r = client.put(
        f"/api/posts/comments/{comment['id']}",
        json={"content": "First! (edited)"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    assert r.json()["is_edited"] is True

    r = client.get(f"/api/posts/{post['id']}", headers=auth_header(student_token))
    detail = r.json()
    assert detail["views"] == 1
    assert detail["comment_count"] == 2
    assert [c["content"] for c in detail["comments"]] == ["First! (edited)", "Welcome"]

    r = client.delete(f"/api/posts/comments/{comment['id']}", headers=auth_header(teacher_token))
    assert r.status_code == 200

    r = client.get(f"/api/posts/{post['id']}", headers=auth_header(student_token))
    assert r.json()["views"] == 2
    assert [c["content"] for c in r.json()["comments"]] == ["Welcome"]


def test_comments_disabled(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token, allow_comments=False)
    r = client.post(
        f"/api/posts/{post['id']}/comments",
        json={"content": "hi"},
        headers=auth_header(student_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Comments are disabled for this post"


def test_soft_delete_by_classroom_teacher(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, student_token)

    peer = login(client, "student2@example.com")
    r = client.delete(f"/api/posts/{post['id']}", headers=auth_header(peer))
    assert r.status_code == 403

    r = client.delete(f"/api/posts/{post['id']}", headers=auth_header(teacher_token))
    assert r.status_code == 200
    assert r.json()["message"] == "Post deleted successfully"

    r = client.get(f"/api/posts/{post['id']}", headers=auth_header(student_token))
    assert r.status_code == 404


def test_only_author_can_edit(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, student_token)
    r = client.put(f"/api/posts/{post['id']}", json={"content": "changed"}, headers=auth_header(teacher_token))
    assert r.status_code == 404
    assert r.json()["detail"] == "Post not found or access denied"

    r = client.put(f"/api/posts/{post['id']}", json={"content": "changed"}, headers=auth_header(student_token))
    assert r.status_code == 200
    assert r.json()["content"] == "changed"


def test_students_cannot_pin(client, seed_data, teacher_token, student_token):
    post = _post(client, seed_data, teacher_token)
    r = client.put(f"/api/posts/{post['id']}/pin", headers=auth_header(student_token))
    assert r.status_code == 403
    assert r.json()["detail"] == "Only teachers can pin posts"
