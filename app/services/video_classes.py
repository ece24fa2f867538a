"""
Video class lifecycle.

    scheduled -> live -> ended
    scheduled -> cancelled

Ending a class recomputes the attendance summary and then runs the
absentee sweep in its own commits, so a failing sweep never undoes the end.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import EARLY_START_WINDOW_MINUTES, LATE_JOIN_CUTOFF_MINUTES
from app.core.errors import AccessDenied, NotFound, RuleViolation, ValidationFailed
from app.core.timeutils import as_utc
from app.models.attendance import AttendanceStatus
from app.models.classroom import Classroom
from app.models.video_class import VideoClass, VideoClassStatus
from app.models.user import User
from app.services import attendance as attendance_service
from app.services.announcements import post_announcement
from app.services.classrooms import get_member
from app.services.video_provider import get_video_provider

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (VideoClassStatus.SCHEDULED.value, VideoClassStatus.LIVE.value)


def ensure_video_class_exists(db: Session, class_id: int) -> VideoClass:
    vc = db.query(VideoClass).filter(VideoClass.id == class_id).first()
    if not vc:
        raise NotFound("Video class not found")
    return vc


def _commit(db: Session, vc: VideoClass) -> VideoClass:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(vc)
    return vc


def _assign_meeting(vc: VideoClass) -> None:
    creds = get_video_provider().create_meeting(vc.id, vc.title)
    vc.meeting_id = creds.meeting_id
    vc.meeting_url = creds.meeting_url
    vc.meeting_password = creds.meeting_password


def _check_window(start: datetime, end: datetime, now: datetime) -> None:
    if as_utc(start) <= as_utc(now):
        raise ValidationFailed("Start time must be in the future")
    if as_utc(end) <= as_utc(start):
        raise ValidationFailed("End time must be after start time")


def find_conflict(db: Session, classroom_id: int, start: datetime, end: datetime, exclude_id: int | None = None):
    q = db.query(VideoClass).filter(
        VideoClass.classroom_id == classroom_id,
        VideoClass.status.in_(ACTIVE_STATUSES),
        VideoClass.scheduled_start_time <= end,
        VideoClass.scheduled_end_time >= start,
    )
    if exclude_id is not None:
        q = q.filter(VideoClass.id != exclude_id)
    return q.first()


def schedule(db: Session, classroom: Classroom, teacher: User, now: datetime, **fields) -> VideoClass:
    start = fields["scheduled_start_time"]
    end = fields["scheduled_end_time"]
    _check_window(start, end, now)

    if find_conflict(db, classroom.id, start, end):
        raise RuleViolation("There is already a class scheduled during this time")

    vc = VideoClass(
        classroom_id=classroom.id,
        teacher_id=teacher.id,
        status=VideoClassStatus.SCHEDULED.value,
        class_type="scheduled",
        total_students_invited=classroom.student_count,
        **fields,
    )
    db.add(vc)
    vc = _commit(db, vc)

    post_announcement(
        db, classroom.id, teacher.id,
        f"Class scheduled: {vc.title}",
        f"A live class has been scheduled for {as_utc(vc.scheduled_start_time):%Y-%m-%d %H:%M} UTC.",
    )
    return vc


def start_instant(
    db: Session,
    classroom: Classroom,
    teacher: User,
    now: datetime,
    title: str,
    duration: int,
    description: str | None = None,
    allow_late_join: bool = True,
    is_recorded: bool = False,
) -> VideoClass:
    live = (
        db.query(VideoClass)
        .filter(
            VideoClass.classroom_id == classroom.id,
            VideoClass.status == VideoClassStatus.LIVE.value,
        )
        .first()
    )
    if live:
        raise RuleViolation("There is already a live class in this classroom")

    vc = VideoClass(
        classroom_id=classroom.id,
        teacher_id=teacher.id,
        title=title,
        description=description,
        scheduled_start_time=now,
        scheduled_end_time=now + timedelta(minutes=duration),
        actual_start_time=now,
        status=VideoClassStatus.LIVE.value,
        class_type="instant",
        max_duration=duration,
        allow_late_join=allow_late_join,
        is_recorded=is_recorded,
        total_students_invited=classroom.student_count,
    )
    db.add(vc)
    db.flush()
    _assign_meeting(vc)
    vc = _commit(db, vc)

    post_announcement(
        db, classroom.id, teacher.id,
        f"Live now: {vc.title}",
        "An instant live class has started. Join now!",
    )
    return vc


def _ensure_teacher(vc: VideoClass, teacher: User, action: str) -> None:
    if vc.teacher_id != teacher.id:
        raise AccessDenied(f"Only the teacher can {action} this class")


def start(db: Session, vc: VideoClass, teacher: User, now: datetime) -> VideoClass:
    _ensure_teacher(vc, teacher, "start")
    if vc.status != VideoClassStatus.SCHEDULED.value:
        raise RuleViolation(f"Class is already {vc.status}")

    earliest = as_utc(vc.scheduled_start_time) - timedelta(minutes=EARLY_START_WINDOW_MINUTES)
    if as_utc(now) < earliest:
        raise RuleViolation(
            f"Class can only be started {EARLY_START_WINDOW_MINUTES} minutes before scheduled time"
        )

    vc.status = VideoClassStatus.LIVE.value
    vc.actual_start_time = now
    _assign_meeting(vc)
    vc = _commit(db, vc)

    post_announcement(
        db, vc.classroom_id, teacher.id,
        f"Live now: {vc.title}",
        "The class has started. Join now!",
    )
    return vc


def end(db: Session, vc: VideoClass, teacher: User, now: datetime) -> VideoClass:
    _ensure_teacher(vc, teacher, "end")
    if vc.status != VideoClassStatus.LIVE.value:
        raise RuleViolation("Class is not currently live")

    vc.status = VideoClassStatus.ENDED.value
    vc.actual_end_time = now
    for p in vc.participants:
        if p.joined_at is not None and p.left_at is None:
            vc.remove_participant(p.student_id, now)

    attended = sum(1 for p in vc.participants if p.joined_at is not None)
    vc.total_students_attended = attended
    if vc.total_students_invited > 0:
        vc.attendance_percentage = attendance_service.round_half_up(
            attended / vc.total_students_invited * 100
        )
    vc = _commit(db, vc)

    try:
        attendance_service.close_open_records(db, vc, now)
        attendance_service.sweep_absentees(db, vc, now)
    except Exception:
        db.rollback()
        logger.exception("Absentee sweep failed for video class %s", vc.id)

    post_announcement(
        db, vc.classroom_id, teacher.id,
        f"Class ended: {vc.title}",
        "The live class has ended.",
    )
    db.refresh(vc)
    return vc


def join(db: Session, vc: VideoClass, student: User, now: datetime) -> VideoClass:
    if get_member(db, vc.classroom_id, student.id) is None:
        raise AccessDenied("You are not enrolled in this classroom")

    if vc.status != VideoClassStatus.LIVE.value:
        if vc.status == VideoClassStatus.SCHEDULED.value:
            raise RuleViolation("Class has not started yet")
        if vc.status == VideoClassStatus.ENDED.value:
            raise RuleViolation("Class has already ended")
        raise RuleViolation("Class is not available")

    if not vc.allow_late_join:
        cutoff = as_utc(vc.actual_start_time) + timedelta(minutes=LATE_JOIN_CUTOFF_MINUTES)
        if as_utc(now) > cutoff:
            raise RuleViolation("Late joining is not allowed for this class")

    vc.add_participant(student.id, now)
    vc = _commit(db, vc)

    try:
        attendance_service.mark_attendance(db, student.id, vc, AttendanceStatus.PRESENT.value, now)
    except Exception:
        db.rollback()
        logger.exception("Failed to mark attendance for student %s in class %s", student.id, vc.id)

    return vc


def leave(db: Session, vc: VideoClass, student: User, now: datetime) -> VideoClass:
    try:
        attendance_service.record_leave(db, student.id, vc.id, now)
    except NotFound:
        pass
    except Exception:
        db.rollback()
        logger.exception("Failed to update attendance on leave for student %s", student.id)

    vc.remove_participant(student.id, now)
    return _commit(db, vc)


def update(db: Session, vc: VideoClass, teacher: User, now: datetime, changes: dict) -> VideoClass:
    _ensure_teacher(vc, teacher, "update")
    if vc.status == VideoClassStatus.LIVE.value:
        raise RuleViolation("Cannot update a live class")
    if vc.status == VideoClassStatus.ENDED.value:
        raise RuleViolation("Cannot update an ended class")

    if "scheduled_start_time" in changes or "scheduled_end_time" in changes:
        start = changes.get("scheduled_start_time", vc.scheduled_start_time)
        end = changes.get("scheduled_end_time", vc.scheduled_end_time)
        _check_window(start, end, now)
        if find_conflict(db, vc.classroom_id, start, end, exclude_id=vc.id):
            raise RuleViolation("There is already a class scheduled during this time")

    for field, value in changes.items():
        setattr(vc, field, value)
    return _commit(db, vc)


def delete(db: Session, vc: VideoClass, teacher: User) -> str:
    """Returns "cancelled" or "deleted"."""
    _ensure_teacher(vc, teacher, "delete")
    if vc.status == VideoClassStatus.LIVE.value:
        raise RuleViolation("Cannot delete a live class. Please end it first.")

    if vc.status == VideoClassStatus.SCHEDULED.value:
        vc.status = VideoClassStatus.CANCELLED.value
        _commit(db, vc)
        post_announcement(
            db, vc.classroom_id, teacher.id,
            f"Class cancelled: {vc.title}",
            "The scheduled class has been cancelled.",
        )
        return "cancelled"

    db.delete(vc)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return "deleted"
