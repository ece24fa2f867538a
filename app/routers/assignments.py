import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import NotFound
from app.core.permissions import require_student, require_teacher
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.assignment import AUTO_GRADED_TYPES, Assignment, AssignmentAttachment, AssignmentQuestion
from app.models.classroom import ALL_LEVELS, Classroom
from app.models.submission import Submission, SubmissionStatus
from app.models.user import Role, User
from app.schemas.assignment import (
    AssignmentCreate,
    AssignmentListItem,
    AssignmentRead,
    AssignmentUpdate,
    SubmissionCounts,
)
from app.schemas.common import Message
from app.schemas.submission import (
    GradeRequest,
    McqSubmissionCreate,
    McqSubmissionResult,
    SubmissionCreate,
    SubmissionRead,
)
from app.services import submissions as submission_service
from app.services.classrooms import (
    classroom_ids_for,
    ensure_access,
    ensure_classroom_exists,
    ensure_owner,
)
from app.services.file_storage import get_file_storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_assignment_exists(db: Session, assignment_id: int) -> Assignment:
    a = db.query(Assignment).filter(Assignment.id == assignment_id).first()
    if not a:
        raise NotFound("Assignment not found")
    return a


def _ensure_owned_assignment(db: Session, assignment_id: int, teacher: User) -> Assignment:
    a = (
        db.query(Assignment)
        .filter(Assignment.id == assignment_id, Assignment.teacher_id == teacher.id)
        .first()
    )
    if not a:
        raise NotFound("Assignment not found or access denied")
    return a


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _student_view(a: Assignment) -> AssignmentRead:
    out = AssignmentRead.model_validate(a)
    for q in out.questions:
        q.correct_answer = None
        q.explanation = None
    return out


def _answer_pairs(payload: SubmissionCreate):
    if not payload.answers:
        return None
    return [(ans.question_id, ans.answer) for ans in payload.answers]


@router.get("", response_model=list[AssignmentListItem])
def list_all_mine(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    ids = classroom_ids_for(db, me)
    q = db.query(Assignment).filter(Assignment.classroom_id.in_(ids))
    if me.role == Role.STUDENT:
        q = q.filter(Assignment.is_published.is_(True))
    assignments = q.order_by(Assignment.due_date.asc()).all()

    if me.role == Role.TEACHER:
        return [_with_counts(db, a) for a in assignments]
    return [_with_status(db, a, me) for a in assignments]


def _with_status(db: Session, a: Assignment, student: User) -> AssignmentListItem:
    sub = (
        db.query(Submission.status)
        .filter(Submission.assignment_id == a.id, Submission.student_id == student.id)
        .first()
    )
    item = AssignmentListItem.model_validate(_student_view(a).model_dump())
    item.submission_status = sub.status if sub else "not-started"
    return item


def _with_counts(db: Session, a: Assignment) -> AssignmentListItem:
    agg = (
        db.query(
            func.count(Submission.id).label("total"),
            func.sum(
                case((Submission.status == SubmissionStatus.GRADED.value, 1), else_=0)
            ).label("graded"),
            func.sum(
                case((Submission.status == SubmissionStatus.SUBMITTED.value, 1), else_=0)
            ).label("pending"),
        )
        .filter(Submission.assignment_id == a.id)
        .first()
    )
    item = AssignmentListItem.model_validate(a)
    item.submission_counts = SubmissionCounts(
        total=int(agg.total or 0),
        graded=int(agg.graded or 0),
        pending=int(agg.pending or 0),
    )
    return item


@router.post(
    "/classroom/{classroom_id}",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assignment(
    classroom_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    now = utcnow()
    a = Assignment(
        classroom_id=classroom.id,
        teacher_id=teacher.id,
        title=payload.title,
        description=payload.description,
        type=payload.type,
        instructions=payload.instructions,
        total_points=payload.total_points,
        due_date=payload.due_date,
        allow_late_submission=payload.allow_late_submission,
        time_limit=payload.time_limit,
        target_levels=list(payload.target_levels or ALL_LEVELS),
        is_published=payload.is_published,
        published_at=now if payload.is_published else None,
    )
    a.questions = [
        AssignmentQuestion(position=i, **q.model_dump())
        for i, q in enumerate(payload.questions)
    ]
    if payload.type in AUTO_GRADED_TYPES and payload.questions:
        a.total_points = sum(q.points for q in payload.questions)

    db.add(a)
    classroom.total_assignments = (classroom.total_assignments or 0) + 1
    _commit(db)
    db.refresh(a)
    logger.info("Assignment %s created in classroom %s", a.id, classroom.id)
    return a


@router.get("/classroom/{classroom_id}", response_model=list[AssignmentListItem])
def list_classroom_assignments(
    classroom_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    member = ensure_access(db, classroom, me)

    q = db.query(Assignment).filter(Assignment.classroom_id == classroom_id)
    if me.role == Role.TEACHER:
        assignments = q.order_by(Assignment.created_at.desc()).all()
        return [_with_counts(db, a) for a in assignments]

    assignments = (
        q.filter(Assignment.is_published.is_(True))
        .order_by(Assignment.due_date.asc())
        .all()
    )
    visible = [a for a in assignments if member.level in (a.target_levels or [])]
    return [_with_status(db, a, me) for a in visible]


@router.get("/{assignment_id}", response_model=AssignmentRead)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    a = _ensure_assignment_exists(db, assignment_id)
    ensure_access(db, a.classroom, me)
    if me.role == Role.STUDENT:
        if not a.is_published:
            raise NotFound("Assignment not found")
        return _student_view(a)
    return a


@router.put("/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    a = _ensure_owned_assignment(db, assignment_id, teacher)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(a, field, value)
    _commit(db)
    db.refresh(a)
    return a


@router.put("/{assignment_id}/publish", response_model=AssignmentRead)
def publish_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    a = _ensure_owned_assignment(db, assignment_id, teacher)
    a.is_published = True
    a.published_at = utcnow()
    _commit(db)
    db.refresh(a)
    return a


@router.delete("/{assignment_id}", response_model=Message)
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    a = _ensure_owned_assignment(db, assignment_id, teacher)
    classroom = db.query(Classroom).filter(Classroom.id == a.classroom_id).first()
    storage = get_file_storage()
    keys = [att.storage_key for att in a.attachments]

    db.delete(a)
    if classroom:
        classroom.total_assignments = max(0, (classroom.total_assignments or 0) - 1)
    _commit(db)

    for key in keys:
        try:
            storage.delete_file(key)
        except Exception:
            logger.exception("Failed to delete attachment %s", key)
    return {"message": "Assignment deleted successfully"}


@router.post("/{assignment_id}/attachments", response_model=AssignmentRead)
def add_attachments(
    assignment_id: int,
    attachments: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    a = _ensure_owned_assignment(db, assignment_id, teacher)
    storage = get_file_storage()
    for upload in attachments:
        stored = storage.save_file(upload, "assignments")
        a.attachments.append(
            AssignmentAttachment(
                file_name=stored.file_name,
                storage_key=stored.key,
                file_size=stored.file_size,
                file_type=stored.file_type,
            )
        )
    _commit(db)
    db.refresh(a)
    return a


@router.get("/{assignment_id}/attachments/{attachment_id}/download")
def download_attachment(
    assignment_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    a = _ensure_assignment_exists(db, assignment_id)
    ensure_access(db, a.classroom, me)
    att = (
        db.query(AssignmentAttachment)
        .filter(
            AssignmentAttachment.id == attachment_id,
            AssignmentAttachment.assignment_id == assignment_id,
        )
        .first()
    )
    if not att:
        raise NotFound("Attachment not found")
    return get_file_storage().download_response(att.storage_key, att.file_name)


@router.get("/{assignment_id}/submissions", response_model=list[SubmissionRead])
def list_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    _ensure_owned_assignment(db, assignment_id, teacher)
    return (
        db.query(Submission)
        .filter(Submission.assignment_id == assignment_id)
        .order_by(Submission.submitted_at.desc())
        .all()
    )


@router.post("/{assignment_id}/submit", response_model=SubmissionRead)
def submit_assignment(
    assignment_id: int,
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    a = _ensure_assignment_exists(db, assignment_id)
    return submission_service.submit(
        db,
        a,
        student,
        utcnow(),
        content=payload.content,
        answers=_answer_pairs(payload),
        time_spent=payload.time_spent,
    )


@router.put("/{assignment_id}/draft", response_model=SubmissionRead)
def save_draft(
    assignment_id: int,
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    a = _ensure_assignment_exists(db, assignment_id)
    return submission_service.save_draft(
        db,
        a,
        student,
        utcnow(),
        content=payload.content,
        answers=_answer_pairs(payload),
    )


@router.post("/{assignment_id}/submit-mcq", response_model=McqSubmissionResult)
def submit_mcq(
    assignment_id: int,
    payload: McqSubmissionCreate,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    a = _ensure_assignment_exists(db, assignment_id)
    sub, earned = submission_service.submit_mcq(
        db, a, student, utcnow(), payload.answers, payload.time_spent
    )
    return {
        "message": "MCQ assignment submitted and graded successfully",
        "score": earned,
        "total_points": a.total_points,
        "percentage": sub.percentage or 0,
        "submission": sub,
    }


@router.post("/{assignment_id}/submit-files", response_model=SubmissionRead)
def submit_files(
    assignment_id: int,
    files: Optional[list[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    a = _ensure_assignment_exists(db, assignment_id)
    return submission_service.submit_files(
        db, a, student, utcnow(), files or [], get_file_storage()
    )


@router.put("/submissions/{submission_id}/grade", response_model=SubmissionRead)
def grade_submission(
    submission_id: int,
    payload: GradeRequest,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    sub = submission_service.get_submission_for_teacher(db, submission_id, teacher)
    return submission_service.grade(
        db,
        sub,
        teacher,
        payload.points,
        utcnow(),
        feedback=payload.feedback,
        rubric_scores=[r.model_dump() for r in payload.rubric_scores],
    )


@router.put("/submissions/{submission_id}/return", response_model=SubmissionRead)
def return_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    sub = submission_service.get_submission_for_teacher(db, submission_id, teacher, action="return")
    return submission_service.return_submission(db, sub)
