import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import ConflictError, NotFound, RuleViolation, ValidationFailed
from app.core.permissions import require_student, require_teacher
from app.db.session import get_db
from app.models.classroom import ALL_LEVELS, Classroom, ClassroomMember
from app.models.user import User
from app.schemas.classroom import (
    ClassroomCreate,
    ClassroomRead,
    ClassroomStudent,
    ClassroomUpdate,
    JoinClassroomRequest,
    LevelUpdate,
)
from app.schemas.common import Message
from app.services.classrooms import (
    classroom_ids_for,
    create_classroom,
    ensure_access,
    ensure_classroom_exists,
    ensure_owner,
    get_member,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


@router.post("", response_model=ClassroomRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: ClassroomCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = create_classroom(db, teacher, **payload.model_dump())
    logger.info("Classroom %s created with code %s", classroom.id, classroom.class_code)
    return classroom


@router.get("", response_model=list[ClassroomRead])
def list_mine(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    ids = classroom_ids_for(db, me)
    return (
        db.query(Classroom)
        .filter(Classroom.id.in_(ids))
        .order_by(Classroom.created_at.desc())
        .all()
    )


@router.post("/join", response_model=ClassroomRead)
def join(
    payload: JoinClassroomRequest,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    classroom = (
        db.query(Classroom)
        .filter(
            Classroom.class_code == payload.class_code.upper(),
            Classroom.is_active.is_(True),
        )
        .first()
    )
    if not classroom:
        raise NotFound("Invalid class code")

    if get_member(db, classroom.id, student.id):
        raise ConflictError("You are already enrolled in this classroom")

    db.add(ClassroomMember(classroom_id=classroom.id, student_id=student.id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You are already enrolled in this classroom")

    db.refresh(classroom)
    return classroom


@router.get("/{classroom_id}", response_model=ClassroomRead)
def get(
    classroom_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)
    return classroom


@router.put("/{classroom_id}", response_model=ClassroomRead)
def update(
    classroom_id: int,
    payload: ClassroomUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(classroom, field, value)
    _commit(db)
    db.refresh(classroom)
    return classroom


@router.put("/{classroom_id}/archive", response_model=ClassroomRead)
def archive(
    classroom_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)
    classroom.is_active = False
    _commit(db)
    db.refresh(classroom)
    return classroom


@router.delete("/{classroom_id}/leave", response_model=Message)
def leave(
    classroom_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    ensure_classroom_exists(db, classroom_id)
    member = get_member(db, classroom_id, student.id)
    if not member:
        raise RuleViolation("You are not enrolled in this classroom")
    db.delete(member)
    _commit(db)
    return {"message": "Left classroom successfully"}


@router.get("/{classroom_id}/students", response_model=list[ClassroomStudent])
def list_students(
    classroom_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)

    rows = (
        db.query(ClassroomMember, User)
        .join(User, User.id == ClassroomMember.student_id)
        .filter(ClassroomMember.classroom_id == classroom_id)
        .order_by(User.name.asc())
        .all()
    )
    return [
        {
            "student_id": u.id,
            "name": u.name,
            "email": u.email,
            "student_code": u.student_code,
            "level": m.level,
            "joined_at": m.joined_at,
        }
        for m, u in rows
    ]


@router.delete("/{classroom_id}/students/{student_id}", response_model=Message)
def remove_student(
    classroom_id: int,
    student_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)
    member = get_member(db, classroom_id, student_id)
    if not member:
        raise NotFound("Student not found in this classroom")
    db.delete(member)
    _commit(db)
    return {"message": "Student removed from classroom"}


@router.put("/{classroom_id}/students/{student_id}/level", response_model=ClassroomStudent)
def update_student_level(
    classroom_id: int,
    student_id: int,
    payload: LevelUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    if payload.level not in ALL_LEVELS:
        raise ValidationFailed("Invalid level. Must be beginner, intermediate, or advanced")

    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)
    member = get_member(db, classroom_id, student_id)
    if not member:
        raise NotFound("Student not found in this classroom")

    member.level = payload.level
    _commit(db)
    db.refresh(member)
    u = member.student
    return {
        "student_id": u.id,
        "name": u.name,
        "email": u.email,
        "student_code": u.student_code,
        "level": member.level,
        "joined_at": member.joined_at,
    }
