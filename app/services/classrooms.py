from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AccessDenied, NotFound
from app.models.classroom import Classroom, ClassroomMember, generate_class_code
from app.models.user import Role, User

MAX_CODE_ATTEMPTS = 10


def ensure_classroom_exists(db: Session, classroom_id: int) -> Classroom:
    classroom = db.query(Classroom).filter(Classroom.id == classroom_id).first()
    if not classroom:
        raise NotFound("Classroom not found")
    return classroom


def get_member(db: Session, classroom_id: int, student_id: int) -> ClassroomMember | None:
    return (
        db.query(ClassroomMember)
        .filter(
            ClassroomMember.classroom_id == classroom_id,
            ClassroomMember.student_id == student_id,
        )
        .first()
    )


def ensure_owner(classroom: Classroom, user: User, detail: str = "Access denied to this classroom") -> None:
    if classroom.teacher_id != user.id:
        raise AccessDenied(detail)


def ensure_access(db: Session, classroom: Classroom, user: User) -> ClassroomMember | None:
    """Owner teacher or enrolled student; returns the membership for students."""
    if user.role == Role.TEACHER:
        ensure_owner(classroom, user)
        return None
    member = get_member(db, classroom.id, user.id)
    if member is None:
        raise AccessDenied("Access denied to this classroom")
    return member


def classroom_ids_for(db: Session, user: User, active_only: bool = True) -> list[int]:
    if user.role == Role.TEACHER:
        q = db.query(Classroom.id).filter(Classroom.teacher_id == user.id)
    else:
        q = (
            db.query(Classroom.id)
            .join(ClassroomMember, ClassroomMember.classroom_id == Classroom.id)
            .filter(ClassroomMember.student_id == user.id)
        )
    if active_only:
        q = q.filter(Classroom.is_active.is_(True))
    return [cid for (cid,) in q.all()]


def create_classroom(db: Session, teacher: User, **fields) -> Classroom:
    """Insert with a fresh class code, retrying on the rare code collision."""
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_class_code()
        if db.query(Classroom.id).filter(Classroom.class_code == code).first():
            continue
        classroom = Classroom(teacher_id=teacher.id, class_code=code, **fields)
        db.add(classroom)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            continue
        db.refresh(classroom)
        return classroom
    raise RuntimeError("Could not generate a unique class code")
