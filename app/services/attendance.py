"""
Attendance engine.

Derived fields on an Attendance row are recomputed from its timestamps on
every save, in this order: late join, early leave, duration, percentage.
The stats helpers are side-effect free reducers over rows.
"""
import logging
import math
from collections import defaultdict
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.config import (
    EARLY_LEAVE_THRESHOLD_MINUTES,
    FORCED_LATE_THRESHOLD_MINUTES,
    LATE_JOIN_THRESHOLD_MINUTES,
)
from app.core.errors import NotFound
from app.core.timeutils import as_utc, ceil_minutes
from app.models.attendance import Attendance, AttendanceStatus
from app.models.classroom import ClassroomMember
from app.models.video_class import VideoClass

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _minutes_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 60


def check_late_join(record: Attendance) -> None:
    record.is_late_join = False
    record.late_by_minutes = 0
    if record.joined_at is None or record.class_start_time is None:
        return
    late_by = _minutes_between(record.class_start_time, record.joined_at)
    if late_by > LATE_JOIN_THRESHOLD_MINUTES:
        record.is_late_join = True
        record.late_by_minutes = math.ceil(late_by)
        if late_by > FORCED_LATE_THRESHOLD_MINUTES:
            record.status = AttendanceStatus.LATE.value


def check_early_leave(record: Attendance) -> None:
    record.is_early_leave = False
    record.early_leave_minutes = 0
    if record.left_at is None or record.class_end_time is None:
        return
    early_by = _minutes_between(record.left_at, record.class_end_time)
    if early_by > EARLY_LEAVE_THRESHOLD_MINUTES:
        record.is_early_leave = True
        record.early_leave_minutes = math.ceil(early_by)


def compute_duration(record: Attendance, now: datetime) -> int:
    if record.joined_at is None:
        return 0
    if record.left_at is not None:
        end = record.left_at
    else:
        # still in the class: count up to now, capped at the class end
        end = min(as_utc(now), as_utc(record.class_end_time))
    return max(0, ceil_minutes(record.joined_at, end))


def compute_percentage(record: Attendance) -> int:
    if record.status == AttendanceStatus.ABSENT.value:
        return 0
    total = ceil_minutes(record.class_start_time, record.class_end_time)
    if total <= 0:
        return 0
    return min(100, round_half_up(record.duration / total * 100))


def recalculate(record: Attendance, now: datetime) -> Attendance:
    check_late_join(record)
    check_early_leave(record)
    record.duration = compute_duration(record, now)
    record.attendance_percentage = compute_percentage(record)
    return record


def _commit(db: Session, record: Attendance) -> Attendance:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record


def mark_attendance(
    db: Session,
    student_id: int,
    video_class: VideoClass,
    status: str,
    now: datetime,
) -> Attendance:
    """Upsert keyed on (student, video class)."""
    record = (
        db.query(Attendance)
        .filter(
            Attendance.student_id == student_id,
            Attendance.video_class_id == video_class.id,
        )
        .first()
    )
    if record is None:
        record = Attendance(
            student_id=student_id,
            classroom_id=video_class.classroom_id,
            video_class_id=video_class.id,
        )
        db.add(record)

    record.status = status
    record.class_start_time = video_class.class_start_time
    record.class_end_time = video_class.class_end_time
    if status == AttendanceStatus.ABSENT.value:
        record.joined_at = None
    else:
        record.joined_at = now
    record.left_at = None

    recalculate(record, now)
    return _commit(db, record)


def _leave_time(record: Attendance, now: datetime) -> datetime:
    """A leave can never be stamped after the class ended."""
    if record.class_end_time is None:
        return now
    return min(as_utc(now), as_utc(record.class_end_time))


def record_leave(db: Session, student_id: int, video_class_id: int, now: datetime) -> Attendance:
    record = (
        db.query(Attendance)
        .filter(
            Attendance.student_id == student_id,
            Attendance.video_class_id == video_class_id,
        )
        .first()
    )
    if not record:
        raise NotFound("Attendance record not found")

    if record.left_at is None:
        record.left_at = _leave_time(record, now)
    recalculate(record, now)
    return _commit(db, record)


def close_open_records(db: Session, video_class: VideoClass, now: datetime) -> int:
    """Stamp left_at on rows of students still in the class when it ends."""
    records = (
        db.query(Attendance)
        .filter(
            Attendance.video_class_id == video_class.id,
            Attendance.joined_at.is_not(None),
            Attendance.left_at.is_(None),
        )
        .all()
    )
    for record in records:
        record.class_end_time = video_class.class_end_time
        record.left_at = _leave_time(record, now)
        recalculate(record, now)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(records)


def sweep_absentees(db: Session, video_class: VideoClass, now: datetime) -> int:
    """
    Create an absent row for every enrolled student with no row for this class.

    Best-effort: a failure for one student is logged and the sweep moves on.
    Returns the number of rows created.
    """
    existing = {
        sid
        for (sid,) in db.query(Attendance.student_id)
        .filter(Attendance.video_class_id == video_class.id)
        .all()
    }
    student_ids = [
        sid
        for (sid,) in db.query(ClassroomMember.student_id)
        .filter(ClassroomMember.classroom_id == video_class.classroom_id)
        .all()
    ]

    created = 0
    for sid in student_ids:
        if sid in existing:
            continue
        record = Attendance(
            student_id=sid,
            classroom_id=video_class.classroom_id,
            video_class_id=video_class.id,
            status=AttendanceStatus.ABSENT.value,
            class_start_time=video_class.class_start_time,
            class_end_time=video_class.class_end_time,
        )
        recalculate(record, now)
        db.add(record)
        try:
            db.commit()
            created += 1
        except Exception:
            db.rollback()
            logger.exception(
                "Failed to mark student %s absent for video class %s", sid, video_class.id
            )

    if created:
        logger.info("Marked %s absent for video class %s", created, video_class.id)
    return created


def student_stats(records) -> dict:
    total = len(records)
    if total == 0:
        return {
            "total_classes": 0,
            "present": 0,
            "late": 0,
            "absent": 0,
            "total_duration": 0,
            "average_attendance_percentage": 0,
            "attendance_percentage": 0,
        }

    present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT.value)
    late = sum(1 for r in records if r.status == AttendanceStatus.LATE.value)
    absent = sum(1 for r in records if r.status == AttendanceStatus.ABSENT.value)
    return {
        "total_classes": total,
        "present": present,
        "late": late,
        "absent": absent,
        "total_duration": sum(r.duration or 0 for r in records),
        "average_attendance_percentage": round(
            sum(r.attendance_percentage or 0 for r in records) / total, 2
        ),
        "attendance_percentage": round_half_up((present + late) / total * 100),
    }


def classroom_stats(records) -> list[dict]:
    """Per-student rows, highest attendance first."""
    by_student = defaultdict(list)
    for r in records:
        by_student[r.student_id].append(r)

    rows = []
    for student_id, student_records in by_student.items():
        stats = student_stats(student_records)
        total = stats["total_classes"]
        stats["attendance_percentage"] = round(
            (stats["present"] + stats["late"]) / total * 100, 2
        )
        stats["student_id"] = student_id
        rows.append(stats)

    rows.sort(key=lambda row: row["attendance_percentage"], reverse=True)
    return rows
