from datetime import datetime, timedelta, timezone

from app.models.attendance import Attendance
from app.models.post import Post

PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _future(minutes: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(minutes=minutes)).isoformat()


def test_schedule_class_posts_announcement(client, db, seed_data, teacher_token):
    r = client.post(
        "/api/video-classes/schedule",
        json={
            "classroom_id": seed_data["classroom_id"],
            "title": "Lecture 2",
            "scheduled_start_time": _future(24 * 60),
            "scheduled_end_time": _future(24 * 60 + 60),
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "scheduled"
    assert r.json()["total_students_invited"] == 2

    titles = [p.title for p in db.query(Post).filter(Post.classroom_id == seed_data["classroom_id"]).all()]
    assert "Class scheduled: Lecture 2" in titles


def test_schedule_rejects_past_start(client, seed_data, teacher_token):
    r = client.post(
        "/api/video-classes/schedule",
        json={
            "classroom_id": seed_data["classroom_id"],
            "title": "Yesterday",
            "scheduled_start_time": _future(-60),
            "scheduled_end_time": _future(60),
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Start time must be in the future"


def test_schedule_rejects_overlap(client, seed_data, teacher_token):
    # seeded class runs from +10 to +70 minutes
    r = client.post(
        "/api/video-classes/schedule",
        json={
            "classroom_id": seed_data["classroom_id"],
            "title": "Clash",
            "scheduled_start_time": _future(30),
            "scheduled_end_time": _future(90),
        },
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "There is already a class scheduled during this time"


def test_start_join_leave_end(client, db, seed_data, teacher_token, student_token):
    class_id = seed_data["video_class_id"]

    r = client.post(f"/api/video-classes/{class_id}/join", headers=auth_header(student_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Class has not started yet"

    r = client.put(f"/api/video-classes/{class_id}/start", headers=auth_header(teacher_token))
    assert r.status_code == 200, r.text
    started = r.json()
    assert started["status"] == "live"
    assert started["meeting_url"]
    assert len(started["meeting_password"]) == 6

    r = client.post(f"/api/video-classes/{class_id}/join", headers=auth_header(student_token))
    assert r.status_code == 200, r.text
    joined = r.json()
    assert joined["meeting_password"] == started["meeting_password"]
    assert joined["video_class"]["meeting_password"] is None

    r = client.put(f"/api/video-classes/{class_id}/leave", headers=auth_header(student_token))
    assert r.status_code == 200
    assert r.json()["message"] == "Left class successfully"

    r = client.put(f"/api/video-classes/{class_id}/end", headers=auth_header(teacher_token))
    assert r.status_code == 200, r.text
    ended = r.json()
    assert ended["status"] == "ended"
    assert ended["total_students_attended"] == 1
    assert ended["attendance_percentage"] == 50

    records = {a.student_id: a for a in db.query(Attendance).filter(Attendance.video_class_id == class_id).all()}
    assert records[seed_data["student1_id"]].status == "present"
    assert records[seed_data["student1_id"]].left_at is not None
    assert records[seed_data["student2_id"]].status == "absent"
    assert records[seed_data["student2_id"]].attendance_percentage == 0

    r = client.put(f"/api/video-classes/{class_id}/end", headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Class is not currently live"


def test_cannot_start_too_early(client, seed_data, teacher_token):
    r = client.post(
        "/api/video-classes/schedule",
        json={
            "classroom_id": seed_data["classroom_id"],
            "title": "Tomorrow",
            "scheduled_start_time": _future(24 * 60),
            "scheduled_end_time": _future(24 * 60 + 60),
        },
        headers=auth_header(teacher_token),
    )
    class_id = r.json()["id"]

    r = client.put(f"/api/video-classes/{class_id}/start", headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "Class can only be started 15 minutes before scheduled time"


def test_only_owner_can_start(client, seed_data):
    other = login(client, "teacher2@example.com")
    r = client.put(f"/api/video-classes/{seed_data['video_class_id']}/start", headers=auth_header(other))
    assert r.status_code == 403


def test_instant_class_blocks_second_live(client, seed_data, teacher_token):
    payload = {"classroom_id": seed_data["classroom_id"], "title": "Doubt session", "duration": 30}
    r = client.post("/api/video-classes/instant", json=payload, headers=auth_header(teacher_token))
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "live"
    assert r.json()["class_type"] == "instant"

    r = client.post("/api/video-classes/instant", json=payload, headers=auth_header(teacher_token))
    assert r.status_code == 400
    assert r.json()["detail"] == "There is already a live class in this classroom"

    r = client.get(
        f"/api/video-classes/classroom/{seed_data['classroom_id']}/live",
        headers=auth_header(teacher_token),
    )
    assert [c["title"] for c in r.json()] == ["Doubt session"]


def test_outsider_cannot_join(client, seed_data, teacher_token):
    client.put(f"/api/video-classes/{seed_data['video_class_id']}/start", headers=auth_header(teacher_token))
    outsider = login(client, "student3@example.com")
    r = client.post(f"/api/video-classes/{seed_data['video_class_id']}/join", headers=auth_header(outsider))
    assert r.status_code == 403


def test_delete_scheduled_class_cancels_it(client, seed_data, teacher_token, student_token):
    class_id = seed_data["video_class_id"]
    r = client.delete(f"/api/video-classes/{class_id}", headers=auth_header(teacher_token))
    assert r.status_code == 200
    assert r.json()["message"] == "Class cancelled successfully"

    r = client.get(
        f"/api/video-classes/classroom/{seed_data['classroom_id']}?status=cancelled",
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    classes = r.json()["classes"]
    assert [c["id"] for c in classes] == [class_id]
    assert classes[0]["meeting_password"] is None
    assert r.json()["pagination"]["total_records"] == 1


def test_upcoming_lists_scheduled_classes(client, seed_data, student_token):
    r = client.get(
        f"/api/video-classes/classroom/{seed_data['classroom_id']}/upcoming",
        headers=auth_header(student_token),
    )
    assert r.status_code == 200
    assert [c["id"] for c in r.json()] == [seed_data["video_class_id"]]


def test_update_live_class_rejected(client, seed_data, teacher_token):
    class_id = seed_data["video_class_id"]
    client.put(f"/api/video-classes/{class_id}/start", headers=auth_header(teacher_token))
    r = client.put(
        f"/api/video-classes/{class_id}",
        json={"title": "Renamed"},
        headers=auth_header(teacher_token),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot update a live class"
