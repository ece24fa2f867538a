"""Read-only calendar built from assignment due dates, DPP due dates and class schedules."""
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.timeutils import as_utc
from app.models.assignment import Assignment
from app.models.classroom import Classroom
from app.models.dpp import Dpp
from app.models.user import Role, User
from app.models.video_class import VideoClass


def collect_events(db: Session, user: User, classroom_ids: list[int], start: datetime, end: datetime) -> list[dict]:
    if not classroom_ids:
        return []

    names = dict(
        db.query(Classroom.id, Classroom.name).filter(Classroom.id.in_(classroom_ids)).all()
    )
    student = user.role == Role.STUDENT
    events = []

    q = db.query(Assignment).filter(
        Assignment.classroom_id.in_(classroom_ids),
        Assignment.due_date >= start,
        Assignment.due_date <= end,
    )
    if student:
        q = q.filter(Assignment.is_published.is_(True))
    for a in q.all():
        events.append(
            {
                "id": f"assignment-{a.id}",
                "type": "assignment",
                "title": a.title,
                "date": as_utc(a.due_date),
                "classroom_id": a.classroom_id,
                "classroom_name": names.get(a.classroom_id),
                "source_id": a.id,
            }
        )

    q = db.query(Dpp).filter(
        Dpp.classroom_id.in_(classroom_ids),
        Dpp.due_date >= start,
        Dpp.due_date <= end,
    )
    if student:
        q = q.filter(Dpp.is_published.is_(True))
    for d in q.all():
        events.append(
            {
                "id": f"dpp-{d.id}",
                "type": "dpp",
                "title": d.title,
                "date": as_utc(d.due_date),
                "classroom_id": d.classroom_id,
                "classroom_name": names.get(d.classroom_id),
                "source_id": d.id,
            }
        )

    classes = db.query(VideoClass).filter(
        VideoClass.classroom_id.in_(classroom_ids),
        VideoClass.scheduled_start_time >= start,
        VideoClass.scheduled_start_time <= end,
    )
    for vc in classes.all():
        events.append(
            {
                "id": f"video_class-{vc.id}",
                "type": "video_class",
                "title": vc.title,
                "date": as_utc(vc.scheduled_start_time),
                "end_date": as_utc(vc.scheduled_end_time),
                "classroom_id": vc.classroom_id,
                "classroom_name": names.get(vc.classroom_id),
                "status": vc.status,
                "source_id": vc.id,
            }
        )

    events.sort(key=lambda e: e["date"])
    return events
