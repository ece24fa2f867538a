"""
Submission lifecycle for assignments.

    draft -> submitted -> graded -> returned

A submission row is unique per (assignment, student). Anything past draft
is final for the student; only the teacher moves it further.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AccessDenied, ConflictError, NotFound, RuleViolation
from app.core.timeutils import as_utc
from app.models.assignment import Assignment
from app.models.classroom import ClassroomMember
from app.models.submission import Submission, SubmissionStatus
from app.models.user import User
from app.services.grading import calculate_grade, score_assignment_answers

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "Assignment already submitted"
DEADLINE_PASSED = "Assignment deadline has passed and late submissions are not allowed"


def is_late(assignment: Assignment, now: datetime) -> bool:
    return as_utc(now) > as_utc(assignment.due_date)


def check_can_submit(db: Session, assignment: Assignment, student: User, now: datetime) -> ClassroomMember:
    """Run the submit preconditions in order; returns the student's membership."""
    if not assignment.is_published:
        raise RuleViolation("Assignment is not yet published")

    member = (
        db.query(ClassroomMember)
        .filter(
            ClassroomMember.classroom_id == assignment.classroom_id,
            ClassroomMember.student_id == student.id,
        )
        .first()
    )
    if not member:
        raise AccessDenied("Access denied to this assignment")

    if member.level not in (assignment.target_levels or []):
        raise AccessDenied("This assignment is not for your level")

    if is_late(assignment, now) and not assignment.allow_late_submission:
        raise RuleViolation(DEADLINE_PASSED)

    return member


def _open_submission(db: Session, assignment: Assignment, student: User) -> Submission:
    """Existing draft, or a fresh row. Anything past draft is rejected."""
    sub = (
        db.query(Submission)
        .filter(
            Submission.assignment_id == assignment.id,
            Submission.student_id == student.id,
        )
        .first()
    )
    if sub is not None:
        if sub.status != SubmissionStatus.DRAFT.value:
            raise ConflictError(ALREADY_SUBMITTED)
        return sub

    sub = Submission(
        assignment_id=assignment.id,
        student_id=student.id,
        status=SubmissionStatus.DRAFT.value,
    )
    db.add(sub)
    return sub


def _commit(db: Session, sub: Submission) -> Submission:
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent submit for the same pair
        db.rollback()
        raise ConflictError(ALREADY_SUBMITTED)
    except Exception:
        db.rollback()
        raise
    db.refresh(sub)
    return sub


def apply_grade(sub: Submission, points: float, total_points: float, graded_by: int, now: datetime) -> None:
    percentage, letter = calculate_grade(points, total_points)
    sub.points = points
    sub.percentage = percentage
    sub.letter_grade = letter
    sub.status = SubmissionStatus.GRADED.value
    sub.graded_by = graded_by
    sub.graded_at = now


def _mark_submitted(sub: Submission, assignment: Assignment, now: datetime) -> None:
    sub.status = SubmissionStatus.SUBMITTED.value
    sub.submitted_at = now
    sub.is_late_submission = is_late(assignment, now)


def submit(
    db: Session,
    assignment: Assignment,
    student: User,
    now: datetime,
    content: str | None = None,
    answers: list | None = None,
    time_spent: int | None = None,
) -> Submission:
    """
    Generic submit. answers is a list of (question_id, answer) pairs.

    Auto-gradable types with answers are scored and graded in the same commit.
    """
    check_can_submit(db, assignment, student, now)
    sub = _open_submission(db, assignment, student)

    if content is not None:
        sub.content = content
    if time_spent is not None:
        sub.time_spent = time_spent

    processed = None
    earned = 0.0
    if answers:
        processed, earned = score_assignment_answers(assignment.questions, answers)
        sub.answers = processed

    _mark_submitted(sub, assignment, now)

    if assignment.is_auto_graded and processed:
        apply_grade(sub, earned, assignment.total_points, assignment.teacher_id, now)
        logger.info(
            "Auto-graded submission for assignment %s student %s: %s/%s",
            assignment.id, student.id, earned, assignment.total_points,
        )

    return _commit(db, sub)


def save_draft(
    db: Session,
    assignment: Assignment,
    student: User,
    now: datetime,
    content: str | None = None,
    answers: list | None = None,
) -> Submission:
    check_can_submit(db, assignment, student, now)
    sub = _open_submission(db, assignment, student)
    if content is not None:
        sub.content = content
    if answers is not None:
        sub.answers = [
            {"question_id": qid, "answer": answer, "is_correct": None, "points_earned": 0}
            for qid, answer in answers
        ]
    return _commit(db, sub)


def submit_mcq(
    db: Session,
    assignment: Assignment,
    student: User,
    now: datetime,
    answers: dict,
    time_spent: int | None = None,
) -> tuple[Submission, float]:
    """answers maps question id -> chosen answer; only known question ids are kept."""
    if assignment.type != "mcq":
        raise RuleViolation("This endpoint is only for MCQ assignments")
    check_can_submit(db, assignment, student, now)
    sub = _open_submission(db, assignment, student)

    known = {q.id for q in assignment.questions}
    pairs = [(qid, answer) for qid, answer in answers.items() if qid in known]
    processed, earned = score_assignment_answers(assignment.questions, pairs)

    sub.answers = processed
    if time_spent is not None:
        sub.time_spent = time_spent
    _mark_submitted(sub, assignment, now)
    apply_grade(sub, earned, assignment.total_points, assignment.teacher_id, now)

    return _commit(db, sub), earned


def submit_files(
    db: Session,
    assignment: Assignment,
    student: User,
    now: datetime,
    files: list,
    storage,
) -> Submission:
    """Files are written to storage only once every precondition has passed."""
    if assignment.type != "file":
        raise RuleViolation("This endpoint is only for file-based assignments")
    check_can_submit(db, assignment, student, now)
    sub = _open_submission(db, assignment, student)
    if not files:
        raise RuleViolation("No files uploaded")

    sub.attachments = [storage.save_file(f, "submissions").as_dict() for f in files]
    sub.content = "File submission"
    _mark_submitted(sub, assignment, now)
    return _commit(db, sub)


def get_submission_for_teacher(db: Session, submission_id: int, teacher: User, action: str = "grade") -> Submission:
    sub = db.query(Submission).filter(Submission.id == submission_id).first()
    if not sub:
        raise NotFound("Submission not found")
    if sub.assignment.teacher_id != teacher.id:
        raise AccessDenied(f"Access denied to {action} this submission")
    return sub


def grade(
    db: Session,
    sub: Submission,
    teacher: User,
    points: float,
    now: datetime,
    feedback: str | None = None,
    rubric_scores: list[dict] | None = None,
) -> Submission:
    # no upper bound on points for assignments; DPP grading checks its max
    sub.feedback = feedback
    sub.rubric_scores = list(rubric_scores or [])
    apply_grade(sub, points, sub.assignment.total_points, teacher.id, now)
    return _commit(db, sub)


def return_submission(db: Session, sub: Submission) -> Submission:
    if sub.status != SubmissionStatus.GRADED.value:
        raise RuleViolation("Only graded submissions can be returned")
    sub.status = SubmissionStatus.RETURNED.value
    return _commit(db, sub)
