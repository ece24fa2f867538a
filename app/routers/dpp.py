import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import AccessDenied, NotFound
from app.core.permissions import require_student, require_teacher
from app.core.timeutils import as_utc, utcnow
from app.db.session import get_db
from app.models.classroom import Classroom
from app.models.dpp import Dpp, DppSubmission
from app.models.user import Role, User
from app.schemas.common import Message, paginate
from app.schemas.dpp import (
    DppAnalytics,
    DppAnswerDetail,
    DppCreate,
    DppGradeRequest,
    DppListItem,
    DppMcqSubmit,
    DppPage,
    DppQuestion,
    DppRead,
    DppSubmissionDetail,
    DppSubmissionRead,
    DppUpdate,
)
from app.services import dpp as dpp_service
from app.services.classrooms import get_member
from app.services.file_storage import get_file_storage
from app.services.grading import strip_correct_flags

logger = logging.getLogger(__name__)

router = APIRouter()


def _submission_detail(dpp: Dpp, sub: DppSubmission) -> DppSubmissionDetail:
    out = DppSubmissionDetail.model_validate(sub)
    out.student_name = sub.student.name if sub.student else None
    if dpp.type == "mcq":
        out.detailed_answers = [
            DppAnswerDetail.model_validate(a) for a in dpp_service.detailed_answers(dpp, sub)
        ]
    return out


def _ensure_dpp_access(db: Session, dpp: Dpp, me: User) -> None:
    if me.role == Role.TEACHER:
        allowed = dpp.teacher_id == me.id
    else:
        allowed = get_member(db, dpp.classroom_id, me.id) is not None
    if not allowed:
        raise AccessDenied("You do not have access to this DPP")


def _student_item(dpp: Dpp, student: User, now) -> DppListItem:
    item = DppListItem.model_validate(dpp)
    item.questions = [DppQuestion.model_validate(q) for q in strip_correct_flags(dpp.questions or [])]
    sub = dpp_service.student_submission(dpp, student.id)
    item.submission_count = len(dpp.submissions)
    item.has_submitted = sub is not None
    item.my_submission = DppSubmissionRead.model_validate(sub) if sub else None
    item.is_overdue = as_utc(now) > as_utc(dpp.due_date)
    return item


def _teacher_item(dpp: Dpp, now) -> DppListItem:
    item = DppListItem.model_validate(dpp)
    item.submission_count = len(dpp.submissions)
    item.average_score = dpp_service.average_score_percent(dpp)
    item.is_overdue = as_utc(now) > as_utc(dpp.due_date)
    return item


@router.post("", response_model=DppRead, status_code=status.HTTP_201_CREATED)
def create_dpp(
    payload: DppCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return dpp_service.create(db, teacher, payload.model_dump(), utcnow())


@router.get("/classroom/{classroom_id}", response_model=DppPage)
def list_classroom_dpps(
    classroom_id: int,
    status_filter: Literal["all", "active", "overdue"] = Query(default="all", alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    if me.role == Role.TEACHER:
        classroom = (
            db.query(Classroom)
            .filter(Classroom.id == classroom_id, Classroom.teacher_id == me.id)
            .first()
        )
    else:
        classroom = db.query(Classroom).filter(Classroom.id == classroom_id).first()
        if classroom and get_member(db, classroom_id, me.id) is None:
            classroom = None
    if not classroom:
        raise NotFound("Classroom not found or you do not have access")

    now = utcnow()
    q = db.query(Dpp).filter(Dpp.classroom_id == classroom_id)
    if me.role == Role.STUDENT:
        q = q.filter(Dpp.is_published.is_(True))
    if status_filter == "active":
        q = q.filter(Dpp.due_date >= now)
    elif status_filter == "overdue":
        q = q.filter(Dpp.due_date < now)

    total = q.count()
    dpps = (
        q.order_by(Dpp.created_at.desc(), Dpp.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    if me.role == Role.STUDENT:
        items = [_student_item(d, me, now) for d in dpps]
    else:
        items = [_teacher_item(d, now) for d in dpps]
    return {"dpps": items, "pagination": paginate(page, limit, total, len(items))}


@router.get("/{dpp_id}", response_model=DppListItem)
def get_dpp(
    dpp_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    dpp = dpp_service.ensure_dpp_exists(db, dpp_id)
    _ensure_dpp_access(db, dpp, me)
    if me.role == Role.STUDENT:
        if not dpp.is_published:
            raise NotFound("DPP not found")
        return _student_item(dpp, me, utcnow())
    return _teacher_item(dpp, utcnow())


@router.put("/{dpp_id}", response_model=DppRead)
def update_dpp(
    dpp_id: int,
    payload: DppUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    dpp = dpp_service.ensure_owned_dpp(db, dpp_id, teacher)
    return dpp_service.update(db, dpp, payload.model_dump(exclude_unset=True))


@router.delete("/{dpp_id}", response_model=Message)
def delete_dpp(
    dpp_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    dpp = dpp_service.ensure_owned_dpp(db, dpp_id, teacher)
    dpp_service.delete(db, dpp)
    return {"message": "DPP deleted successfully"}


@router.patch("/{dpp_id}/publish", response_model=DppRead)
def toggle_publish(
    dpp_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    dpp = dpp_service.ensure_owned_dpp(db, dpp_id, teacher)
    return dpp_service.toggle_publish(db, dpp, utcnow())


@router.post("/{dpp_id}/submit/mcq", response_model=DppSubmissionRead)
def submit_mcq(
    dpp_id: int,
    payload: DppMcqSubmit,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    dpp = dpp_service.ensure_dpp_exists(db, dpp_id)
    answers = [a.model_dump() for a in payload.answers]
    return dpp_service.submit_mcq(db, dpp, student, answers, utcnow())


@router.post("/{dpp_id}/submit/files", response_model=DppSubmissionRead)
def submit_files(
    dpp_id: int,
    files: Optional[list[UploadFile]] = File(None),
    assignment_file_ids: Optional[list[int]] = Form(None),
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    dpp = dpp_service.ensure_dpp_exists(db, dpp_id)
    files = files or []
    dpp_service.check_file_submission(db, dpp, student, len(files), assignment_file_ids)

    storage = get_file_storage()
    stored = [
        storage.save_file(
            f,
            "dpp-submissions",
            allowed_extensions=dpp.allowed_file_types or None,
            max_size=dpp.max_file_size,
        ).as_dict()
        for f in files
    ]
    return dpp_service.submit_files(db, dpp, student, stored, assignment_file_ids, utcnow())


@router.put("/{dpp_id}/submissions/{submission_id}/grade", response_model=DppSubmissionRead)
def grade_submission(
    dpp_id: int,
    submission_id: int,
    payload: DppGradeRequest,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    dpp = dpp_service.ensure_owned_dpp(db, dpp_id, teacher)
    sub = dpp_service.ensure_submission(db, dpp, submission_id)
    return dpp_service.grade(db, dpp, sub, teacher, payload.score, payload.feedback, utcnow())


@router.get("/{dpp_id}/submissions/{submission_id}", response_model=DppSubmissionDetail)
def get_submission(
    dpp_id: int,
    submission_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    dpp = dpp_service.ensure_dpp_exists(db, dpp_id)
    _ensure_dpp_access(db, dpp, me)
    sub = dpp_service.ensure_submission(db, dpp, submission_id)
    if me.role == Role.STUDENT and sub.student_id != me.id:
        raise AccessDenied("You can only view your own submission")
    return _submission_detail(dpp, sub)


@router.get("/{dpp_id}/my-submission", response_model=DppSubmissionDetail)
def my_submission(
    dpp_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    dpp = dpp_service.ensure_dpp_exists(db, dpp_id)
    if get_member(db, dpp.classroom_id, student.id) is None:
        raise AccessDenied("You are not enrolled in this classroom")
    sub = dpp_service.student_submission(dpp, student.id)
    if sub is None:
        raise NotFound("No submission found")
    return _submission_detail(dpp, sub)


@router.get("/{dpp_id}/analytics", response_model=DppAnalytics)
def dpp_analytics(
    dpp_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    dpp = dpp_service.ensure_owned_dpp(db, dpp_id, teacher)
    return dpp_service.analytics(db, dpp)
