from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.permissions import require_teacher
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.assignment import Assignment
from app.models.classroom import Classroom
from app.models.submission import Submission, SubmissionStatus
from app.models.user import Role, User
from app.schemas.dashboard import UserDashboard
from app.schemas.submission import GradesSummary, SubmissionRead
from app.schemas.user import UserSummary
from app.services.classrooms import classroom_ids_for

router = APIRouter()


def _teacher_dashboard(db: Session, me: User) -> dict:
    classrooms = (
        db.query(Classroom)
        .filter(Classroom.teacher_id == me.id, Classroom.is_active.is_(True))
        .order_by(Classroom.created_at.desc())
        .all()
    )
    assignment_ids = db.query(Assignment.id).filter(Assignment.teacher_id == me.id)

    total_submissions = (
        db.query(func.count(Submission.id))
        .filter(Submission.assignment_id.in_(assignment_ids))
        .scalar()
    ) or 0
    pending = (
        db.query(func.count(Submission.id))
        .filter(
            Submission.assignment_id.in_(assignment_ids),
            Submission.status == SubmissionStatus.SUBMITTED.value,
        )
        .scalar()
    ) or 0

    return {
        "role": "teacher",
        "teacher_stats": {
            "total_classrooms": len(classrooms),
            "total_assignments": db.query(func.count(Assignment.id))
            .filter(Assignment.teacher_id == me.id)
            .scalar()
            or 0,
            "total_submissions": total_submissions,
            "pending_grading": pending,
        },
        "recent_classrooms": classrooms[:5],
    }


def _student_dashboard(db: Session, me: User) -> dict:
    classroom_ids = classroom_ids_for(db, me)
    published = db.query(Assignment).filter(
        Assignment.classroom_id.in_(classroom_ids),
        Assignment.is_published.is_(True),
    )

    mine = db.query(Submission).filter(Submission.student_id == me.id)
    completed = mine.filter(
        Submission.status.in_([SubmissionStatus.SUBMITTED.value, SubmissionStatus.GRADED.value])
    ).count()
    graded = mine.filter(Submission.status == SubmissionStatus.GRADED.value).count()

    upcoming = (
        published.filter(Assignment.due_date > utcnow())
        .order_by(Assignment.due_date.asc())
        .limit(5)
        .all()
    )

    recent = (
        db.query(Classroom)
        .filter(Classroom.id.in_(classroom_ids))
        .order_by(Classroom.created_at.desc())
        .limit(5)
        .all()
    )

    return {
        "role": "student",
        "student_stats": {
            "enrolled_classrooms": len(classroom_ids),
            "total_assignments": published.count(),
            "completed_assignments": completed,
            "graded_assignments": graded,
        },
        "recent_classrooms": recent,
        "upcoming_assignments": upcoming,
    }


@router.get("/dashboard", response_model=UserDashboard)
def dashboard(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    if me.role == Role.TEACHER:
        return _teacher_dashboard(db, me)
    return _student_dashboard(db, me)


@router.get("/search", response_model=list[UserSummary])
def search_users(
    query: str = Query(default=""),
    role: Role | None = None,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    if len(query.strip()) < 2:
        raise HTTPException(status_code=400, detail="Search query must be at least 2 characters")

    pattern = f"%{query.strip()}%"
    q = db.query(User).filter(
        User.is_active.is_(True),
        or_(User.name.ilike(pattern), User.email.ilike(pattern)),
    )
    if role is not None:
        q = q.filter(User.role == role)
    return q.order_by(User.name.asc()).limit(20).all()


@router.get("/submissions", response_model=list[SubmissionRead])
def submission_history(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return (
        db.query(Submission)
        .filter(Submission.student_id == me.id)
        .order_by(Submission.submitted_at.desc())
        .all()
    )


@router.get("/grades", response_model=GradesSummary)
def grades_summary(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    rows = (
        db.query(Submission, Assignment, Classroom)
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .join(Classroom, Classroom.id == Assignment.classroom_id)
        .filter(
            Submission.student_id == me.id,
            Submission.status.in_([SubmissionStatus.GRADED.value, SubmissionStatus.RETURNED.value]),
        )
        .order_by(Submission.graded_at.desc())
        .all()
    )

    grades = []
    per_classroom = defaultdict(list)
    names = {}
    for sub, assignment, classroom in rows:
        grades.append(
            {
                "submission_id": sub.id,
                "assignment_id": assignment.id,
                "assignment_title": assignment.title,
                "classroom_id": classroom.id,
                "points": sub.points or 0,
                "total_points": assignment.total_points,
                "percentage": sub.percentage,
                "letter_grade": sub.letter_grade,
                "graded_at": sub.graded_at,
            }
        )
        per_classroom[classroom.id].append(sub.percentage or 0)
        names[classroom.id] = classroom.name

    classrooms = [
        {
            "classroom_id": cid,
            "classroom_name": names[cid],
            "graded": len(values),
            "average_percentage": round(sum(values) / len(values), 2),
        }
        for cid, values in per_classroom.items()
    ]
    all_values = [g["percentage"] or 0 for g in grades]
    overall = round(sum(all_values) / len(all_values), 2) if all_values else None

    return {"grades": grades, "classrooms": classrooms, "overall_average": overall}
