import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import ATTENDANCE_GOAL_PERCENT
from app.core.current_user import get_current_user
from app.core.errors import AccessDenied, NotFound, ValidationFailed
from app.core.permissions import require_student, require_teacher
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.attendance import Attendance
from app.models.classroom import Classroom
from app.models.user import Role, User
from app.models.video_class import VideoClass, VideoClassStatus
from app.schemas.attendance import (
    AttendanceDashboard,
    AttendanceRecord,
    AttendanceResponse,
    BulkMarkRequest,
    BulkMarkResponse,
    ClassroomStats,
    MarkAttendanceRequest,
    RecordPage,
    StudentHistory,
    StudentStats,
    SyncAbsencesResult,
)
from app.schemas.common import paginate
from app.services import attendance as attendance_service
from app.services.classrooms import ensure_access, ensure_classroom_exists, ensure_owner, get_member
from app.services.video_classes import ensure_video_class_exists

logger = logging.getLogger(__name__)

router = APIRouter()


def _record(r: Attendance) -> AttendanceRecord:
    out = AttendanceRecord.model_validate(r)
    out.student_name = r.student.name if r.student else None
    out.video_class_title = r.video_class.title if r.video_class else None
    return out


def _resolve_student(me: User, student_id: Optional[int]) -> int:
    if me.role == Role.STUDENT:
        return me.id
    if student_id is None:
        raise ValidationFailed("Student ID is required")
    return student_id


def _ensure_can_view(classroom: Classroom, me: User, student_id: int) -> None:
    if me.role == Role.TEACHER:
        allowed = classroom.teacher_id == me.id
    else:
        allowed = student_id == me.id
    if not allowed:
        raise AccessDenied()


def _filter_dates(q, start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date is not None:
        q = q.filter(Attendance.created_at >= start_date)
    if end_date is not None:
        q = q.filter(Attendance.created_at <= end_date)
    return q


def _student_records(db: Session, student_id: int, classroom_id: int) -> list[Attendance]:
    return (
        db.query(Attendance)
        .filter(Attendance.student_id == student_id, Attendance.classroom_id == classroom_id)
        .all()
    )


def _classroom_rows(db: Session, classroom_id: int) -> list[dict]:
    records = db.query(Attendance).filter(Attendance.classroom_id == classroom_id).all()
    rows = attendance_service.classroom_stats(records)
    users = {r.student_id: r.student for r in records}
    for row in rows:
        u = users.get(row["student_id"])
        row["name"] = u.name if u else None
        row["email"] = u.email if u else None
    return rows


def _ended_count(db: Session, classroom_id: int) -> int:
    return (
        db.query(VideoClass)
        .filter(
            VideoClass.classroom_id == classroom_id,
            VideoClass.status == VideoClassStatus.ENDED.value,
        )
        .count()
    )


@router.post("/classes/{class_id}/mark", response_model=AttendanceResponse)
def mark(
    class_id: int,
    payload: MarkAttendanceRequest,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    vc = ensure_video_class_exists(db, class_id)
    if get_member(db, vc.classroom_id, student.id) is None:
        raise AccessDenied("You are not enrolled in this classroom")
    record = attendance_service.mark_attendance(db, student.id, vc, payload.status, utcnow())
    return {"message": "Attendance marked successfully", "attendance": record}


@router.put("/classes/{class_id}/leave", response_model=AttendanceResponse)
def leave(
    class_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    record = attendance_service.record_leave(db, me.id, class_id, utcnow())
    return {"message": "Attendance updated successfully", "attendance": record}


@router.get("/classrooms/{classroom_id}/students/stats", response_model=StudentStats)
def student_stats(
    classroom_id: int,
    student_id: Optional[int] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    sid = _resolve_student(me, student_id)
    classroom = ensure_classroom_exists(db, classroom_id)
    _ensure_can_view(classroom, me, sid)
    return attendance_service.student_stats(_student_records(db, sid, classroom_id))


@router.get("/classrooms/{classroom_id}/stats", response_model=ClassroomStats)
def classroom_stats(
    classroom_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    rows = _classroom_rows(db, classroom_id)
    average = sum(r["attendance_percentage"] for r in rows) / len(rows) if rows else 0
    return {
        "classroom_id": classroom.id,
        "classroom_name": classroom.name,
        "total_classes": _ended_count(db, classroom_id),
        "total_students": classroom.student_count,
        "average_attendance_rate": round(average, 2),
        "student_stats": rows,
    }


@router.get("/classrooms/{classroom_id}/records", response_model=RecordPage)
def detailed_records(
    classroom_id: int,
    student_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    q = db.query(Attendance).filter(Attendance.classroom_id == classroom_id)
    if student_id is not None:
        q = q.filter(Attendance.student_id == student_id)
    q = _filter_dates(q, start_date, end_date)

    total = q.count()
    records = (
        q.order_by(Attendance.created_at.desc(), Attendance.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "attendance_records": [_record(r) for r in records],
        "pagination": paginate(page, limit, total, len(records)),
    }


@router.get("/classrooms/{classroom_id}/students/history", response_model=StudentHistory)
def student_history(
    classroom_id: int,
    student_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    sid = _resolve_student(me, student_id)
    classroom = ensure_classroom_exists(db, classroom_id)
    _ensure_can_view(classroom, me, sid)

    q = db.query(Attendance).filter(
        Attendance.student_id == sid,
        Attendance.classroom_id == classroom_id,
    )
    q = _filter_dates(q, start_date, end_date)
    total = q.count()
    records = (
        q.order_by(Attendance.created_at.desc(), Attendance.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "student_id": sid,
        "attendance_history": [_record(r) for r in records],
        "stats": attendance_service.student_stats(_student_records(db, sid, classroom_id)),
        "pagination": paginate(page, limit, total, len(records)),
    }


@router.post("/classes/{class_id}/bulk-mark", response_model=BulkMarkResponse)
def bulk_mark(
    class_id: int,
    payload: BulkMarkRequest,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    vc = ensure_video_class_exists(db, class_id)
    if vc.teacher_id != teacher.id:
        raise AccessDenied("Access denied to this class")

    now = utcnow()
    results = []
    for item in payload.attendance_records:
        try:
            if get_member(db, vc.classroom_id, item.student_id) is None:
                raise NotFound("Student not found in this classroom")
            record = attendance_service.mark_attendance(db, item.student_id, vc, item.status, now)
            results.append({"student_id": item.student_id, "success": True, "attendance": record})
        except NotFound as exc:
            results.append({"student_id": item.student_id, "success": False, "error": exc.detail})
        except Exception as exc:
            db.rollback()
            logger.exception("Bulk mark failed for student %s", item.student_id)
            results.append({"student_id": item.student_id, "success": False, "error": str(exc)})

    return {"message": "Bulk attendance marking completed", "results": results}


@router.get("/classrooms/{classroom_id}/dashboard", response_model=AttendanceDashboard)
def dashboard(
    classroom_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)

    if me.role == Role.TEACHER:
        rows = _classroom_rows(db, classroom_id)
        recent = (
            db.query(Attendance)
            .filter(Attendance.classroom_id == classroom_id)
            .order_by(Attendance.created_at.desc(), Attendance.id.desc())
            .limit(10)
            .all()
        )
        average = sum(r["attendance_percentage"] for r in rows) / len(rows) if rows else 0
        return {
            "type": "teacher",
            "classroom_id": classroom.id,
            "classroom_name": classroom.name,
            "total_students": len(rows),
            "total_classes": _ended_count(db, classroom_id),
            "average_attendance": attendance_service.round_half_up(average),
            "student_stats": rows,
            "recent_attendance": [_record(r) for r in recent],
        }

    recent = (
        db.query(Attendance)
        .filter(Attendance.student_id == me.id, Attendance.classroom_id == classroom_id)
        .order_by(Attendance.created_at.desc(), Attendance.id.desc())
        .limit(5)
        .all()
    )
    return {
        "type": "student",
        "classroom_id": classroom.id,
        "classroom_name": classroom.name,
        "stats": attendance_service.student_stats(_student_records(db, me.id, classroom_id)),
        "attendance_goal": ATTENDANCE_GOAL_PERCENT,
        "recent_attendance": [_record(r) for r in recent],
    }


@router.post("/classrooms/{classroom_id}/sync-absences", response_model=SyncAbsencesResult)
def sync_absences(
    classroom_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    ended = (
        db.query(VideoClass)
        .filter(
            VideoClass.classroom_id == classroom_id,
            VideoClass.status == VideoClassStatus.ENDED.value,
        )
        .all()
    )
    now = utcnow()
    created = sum(attendance_service.sweep_absentees(db, vc, now) for vc in ended)
    return {
        "message": "Absences synced successfully",
        "classes_processed": len(ended),
        "new_absences_marked": created,
    }
