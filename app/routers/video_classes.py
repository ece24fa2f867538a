from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import AccessDenied
from app.core.permissions import require_student, require_teacher
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.user import Role, User
from app.models.video_class import VideoClass, VideoClassStatus
from app.schemas.common import Message, paginate
from app.schemas.video_class import (
    InstantClassCreate,
    JoinResult,
    VideoClassPage,
    VideoClassRead,
    VideoClassSchedule,
    VideoClassUpdate,
)
from app.services import video_classes as video_class_service
from app.services.classrooms import ensure_access, ensure_classroom_exists, ensure_owner, get_member

router = APIRouter()


def _student_view(vc: VideoClass) -> VideoClassRead:
    # the password is only handed out on join
    out = VideoClassRead.model_validate(vc)
    out.meeting_password = None
    return out


def _present(vc: VideoClass, me: User):
    return _student_view(vc) if me.role == Role.STUDENT else vc


@router.post("/schedule", response_model=VideoClassRead, status_code=status.HTTP_201_CREATED)
def schedule_class(
    payload: VideoClassSchedule,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, payload.classroom_id)
    ensure_owner(classroom, teacher)
    fields = payload.model_dump(exclude={"classroom_id"})
    return video_class_service.schedule(db, classroom, teacher, utcnow(), **fields)


@router.post("/instant", response_model=VideoClassRead, status_code=status.HTTP_201_CREATED)
def start_instant_class(
    payload: InstantClassCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, payload.classroom_id)
    ensure_owner(classroom, teacher)
    return video_class_service.start_instant(
        db,
        classroom,
        teacher,
        utcnow(),
        title=payload.title,
        duration=payload.duration,
        description=payload.description,
        allow_late_join=payload.allow_late_join,
        is_recorded=payload.is_recorded,
    )


@router.put("/{class_id}/start", response_model=VideoClassRead)
def start_class(
    class_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    return video_class_service.start(db, vc, teacher, utcnow())


@router.put("/{class_id}/end", response_model=VideoClassRead)
def end_class(
    class_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    return video_class_service.end(db, vc, teacher, utcnow())


@router.post("/{class_id}/join", response_model=JoinResult)
def join_class(
    class_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    vc = video_class_service.join(db, vc, student, utcnow())
    return {
        "message": "Joined class successfully",
        "meeting_url": vc.meeting_url,
        "meeting_id": vc.meeting_id,
        "meeting_password": vc.meeting_password,
        "video_class": _student_view(vc),
    }


@router.put("/{class_id}/leave", response_model=Message)
def leave_class(
    class_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    video_class_service.leave(db, vc, student, utcnow())
    return {"message": "Left class successfully"}


@router.get("/classroom/{classroom_id}", response_model=VideoClassPage)
def list_classroom_classes(
    classroom_id: int,
    status_filter: Literal["all", "scheduled", "live", "ended", "cancelled"] = Query(default="all", alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)

    q = db.query(VideoClass).filter(VideoClass.classroom_id == classroom_id)
    if status_filter != "all":
        q = q.filter(VideoClass.status == status_filter)

    total = q.count()
    classes = (
        q.order_by(VideoClass.scheduled_start_time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "classes": [_present(vc, me) for vc in classes],
        "pagination": paginate(page, limit, total, len(classes)),
    }


@router.get("/classroom/{classroom_id}/upcoming", response_model=list[VideoClassRead])
def upcoming_classes(
    classroom_id: int,
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)
    classes = (
        db.query(VideoClass)
        .filter(
            VideoClass.classroom_id == classroom_id,
            VideoClass.status == VideoClassStatus.SCHEDULED.value,
            VideoClass.scheduled_start_time >= utcnow(),
        )
        .order_by(VideoClass.scheduled_start_time.asc())
        .limit(limit)
        .all()
    )
    return [_present(vc, me) for vc in classes]


@router.get("/classroom/{classroom_id}/live", response_model=list[VideoClassRead])
def live_classes(
    classroom_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)
    classes = (
        db.query(VideoClass)
        .filter(
            VideoClass.classroom_id == classroom_id,
            VideoClass.status == VideoClassStatus.LIVE.value,
        )
        .all()
    )
    return [_present(vc, me) for vc in classes]


@router.get("/{class_id}", response_model=VideoClassRead)
def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    if me.role == Role.TEACHER:
        if vc.teacher_id != me.id:
            raise AccessDenied("Access denied to this class")
        return vc
    if get_member(db, vc.classroom_id, me.id) is None:
        raise AccessDenied("Access denied to this class")
    return _student_view(vc)


@router.put("/{class_id}", response_model=VideoClassRead)
def update_class(
    class_id: int,
    payload: VideoClassUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    return video_class_service.update(
        db, vc, teacher, utcnow(), payload.model_dump(exclude_unset=True)
    )


@router.delete("/{class_id}", response_model=Message)
def delete_class(
    class_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    vc = video_class_service.ensure_video_class_exists(db, class_id)
    outcome = video_class_service.delete(db, vc, teacher)
    return {"message": f"Class {outcome} successfully"}
