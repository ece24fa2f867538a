"""Daily practice problems: authoring, one-shot submissions and grading."""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AccessDenied, ConflictError, NotFound, RuleViolation, ValidationFailed
from app.core.timeutils import as_utc
from app.models.classroom import Classroom
from app.models.dpp import DIFFICULTIES, Dpp, DppAssignmentFile, DppSubmission
from app.models.user import User
from app.models.video_class import VideoClass
from app.services.classrooms import get_member
from app.services.grading import correct_option_text, score_dpp_answers

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_FILE_TYPES = [".pdf", ".doc", ".docx", ".txt"]
ALREADY_SUBMITTED = "You have already submitted this DPP"


def default_due_date(now: datetime) -> datetime:
    """End of the next day."""
    tomorrow = as_utc(now) + timedelta(days=1)
    return tomorrow.replace(hour=23, minute=59, second=59, microsecond=999000)


def _commit(db: Session, obj):
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(obj)
    return obj


def ensure_dpp_exists(db: Session, dpp_id: int) -> Dpp:
    dpp = db.query(Dpp).filter(Dpp.id == dpp_id).first()
    if not dpp:
        raise NotFound("DPP not found")
    return dpp


def ensure_owned_dpp(db: Session, dpp_id: int, teacher: User) -> Dpp:
    dpp = db.query(Dpp).filter(Dpp.id == dpp_id, Dpp.teacher_id == teacher.id).first()
    if not dpp:
        raise NotFound("DPP not found or you do not have permission")
    return dpp


def _validate_questions(questions: list[dict]) -> None:
    if not questions:
        raise ValidationFailed("MCQ type DPP must have at least one question")
    for q in questions:
        if q.get("difficulty") not in DIFFICULTIES:
            raise ValidationFailed(
                "Each MCQ question must have a valid difficulty level (easy, medium, hard)"
            )


def _validate_files(files: list[dict]) -> None:
    if not files:
        raise ValidationFailed("File type DPP must have at least one assignment file")
    for f in files:
        if f.get("difficulty") not in DIFFICULTIES:
            raise ValidationFailed(
                "Each assignment file must have a valid difficulty level (easy, medium, hard)"
            )


def create(db: Session, teacher: User, data: dict, now: datetime) -> Dpp:
    classroom = (
        db.query(Classroom)
        .filter(Classroom.id == data["classroom_id"], Classroom.teacher_id == teacher.id)
        .first()
    )
    if not classroom:
        raise NotFound("Classroom not found or you do not have permission")

    video_class = (
        db.query(VideoClass)
        .filter(
            VideoClass.id == data["video_class_id"],
            VideoClass.classroom_id == classroom.id,
            VideoClass.teacher_id == teacher.id,
        )
        .first()
    )
    if not video_class:
        raise NotFound("Video class not found or does not belong to this classroom")

    dpp = Dpp(
        classroom_id=classroom.id,
        video_class_id=video_class.id,
        teacher_id=teacher.id,
        title=data["title"],
        description=data.get("description"),
        type=data["type"],
        tags=data.get("tags") or [],
        estimated_time=data.get("estimated_time") or 30,
        is_published=True,
        published_at=now,
        due_date=data.get("due_date") or default_due_date(now),
    )

    if dpp.type == "mcq":
        questions = data.get("questions") or []
        _validate_questions(questions)
        dpp.questions = questions
        dpp.max_score = sum(q.get("marks") or 1 for q in questions)
    else:
        files = data.get("assignment_files") or []
        _validate_files(files)
        dpp.assignment_files = [
            DppAssignmentFile(
                file_name=f["file_name"],
                file_url=f["file_url"],
                difficulty=f["difficulty"],
                description=f.get("description"),
                points=f.get("points") or 10,
            )
            for f in files
        ]
        dpp.instructions = data.get("instructions") or ""
        dpp.allowed_file_types = data.get("allowed_file_types") or list(DEFAULT_ALLOWED_FILE_TYPES)
        dpp.max_file_size = data.get("max_file_size") or 10 * 1024 * 1024
        dpp.max_files = data.get("max_files") or 5
        dpp.max_score = sum(f.get("points") or 10 for f in files)

    db.add(dpp)
    dpp = _commit(db, dpp)
    logger.info("DPP %s created in classroom %s", dpp.id, classroom.id)
    return dpp


def update(db: Session, dpp: Dpp, changes: dict) -> Dpp:
    if dpp.submissions and ({"type", "questions"} & changes.keys()):
        raise RuleViolation(
            "Cannot modify question type or content after submissions have been made"
        )
    if "questions" in changes:
        _validate_questions(changes["questions"])
        changes["max_score"] = sum(q.get("marks") or 1 for q in changes["questions"])
    for field, value in changes.items():
        setattr(dpp, field, value)
    return _commit(db, dpp)


def toggle_publish(db: Session, dpp: Dpp, now: datetime) -> Dpp:
    dpp.is_published = not dpp.is_published
    if dpp.is_published:
        dpp.published_at = now
    return _commit(db, dpp)


def delete(db: Session, dpp: Dpp) -> None:
    db.delete(dpp)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def student_submission(dpp: Dpp, student_id: int) -> DppSubmission | None:
    for sub in dpp.submissions:
        if sub.student_id == student_id:
            return sub
    return None


def _check_can_submit(db: Session, dpp: Dpp, student: User) -> None:
    if student_submission(dpp, student.id) is not None:
        raise ConflictError(ALREADY_SUBMITTED)
    if get_member(db, dpp.classroom_id, student.id) is None:
        raise AccessDenied("You are not enrolled in this classroom")
    if not dpp.is_published:
        raise RuleViolation("This DPP is not published")


def _save_submission(db: Session, sub: DppSubmission) -> DppSubmission:
    db.add(sub)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(ALREADY_SUBMITTED)
    except Exception:
        db.rollback()
        raise
    db.refresh(sub)
    return sub


def submit_mcq(db: Session, dpp: Dpp, student: User, answers: list[dict], now: datetime) -> DppSubmission:
    if dpp.type != "mcq":
        raise RuleViolation("This DPP is not an MCQ type")
    _check_can_submit(db, dpp, student)

    score = score_dpp_answers(
        dpp.questions or [],
        [(a["question_index"], a["selected_option"]) for a in answers],
    )
    sub = DppSubmission(
        dpp_id=dpp.id,
        student_id=student.id,
        submitted_at=now,
        answers=answers,
        score=score,
        max_score=dpp.max_score,
        is_late=as_utc(now) > as_utc(dpp.due_date),
        # auto-graded on submit
        graded_at=now,
        graded_by=dpp.teacher_id,
    )
    return _save_submission(db, sub)


def check_file_submission(db: Session, dpp: Dpp, student: User, file_count: int, assignment_file_ids: list[int] | None) -> None:
    if dpp.type != "file":
        raise RuleViolation("This DPP is not a file submission type")
    _check_can_submit(db, dpp, student)
    if file_count == 0:
        raise RuleViolation("No files uploaded")
    if file_count > dpp.max_files:
        raise ValidationFailed(f"Too many files: at most {dpp.max_files} allowed")
    if assignment_file_ids and len(assignment_file_ids) != file_count:
        raise ValidationFailed("Number of assignment file IDs must match number of uploaded files")


def submit_files(
    db: Session,
    dpp: Dpp,
    student: User,
    stored_files: list[dict],
    assignment_file_ids: list[int] | None,
    now: datetime,
) -> DppSubmission:
    files_by_id = {f.id: f for f in dpp.assignment_files}
    file_submissions = []
    for index, stored in enumerate(stored_files):
        entry = {
            "file_name": stored["file_name"],
            "storage_key": stored["storage_key"],
            "file_size": stored["file_size"],
        }
        if assignment_file_ids:
            target = files_by_id.get(assignment_file_ids[index])
            if target is not None:
                entry["assignment_file_id"] = target.id
                entry["difficulty"] = target.difficulty
        file_submissions.append(entry)

    sub = DppSubmission(
        dpp_id=dpp.id,
        student_id=student.id,
        submitted_at=now,
        file_submissions=file_submissions,
        score=0,
        max_score=dpp.max_score,
        is_late=as_utc(now) > as_utc(dpp.due_date),
    )
    return _save_submission(db, sub)


def ensure_submission(db: Session, dpp: Dpp, submission_id: int) -> DppSubmission:
    sub = (
        db.query(DppSubmission)
        .filter(DppSubmission.id == submission_id, DppSubmission.dpp_id == dpp.id)
        .first()
    )
    if not sub:
        raise NotFound("Submission not found")
    return sub


def grade(db: Session, dpp: Dpp, sub: DppSubmission, teacher: User, score: float, feedback: str | None, now: datetime) -> DppSubmission:
    if score < 0 or score > dpp.max_score:
        raise ValidationFailed(f"Score must be between 0 and {dpp.max_score:g}")
    sub.score = score
    sub.feedback = feedback
    sub.graded_at = now
    sub.graded_by = teacher.id
    return _commit(db, sub)


def average_score_percent(dpp: Dpp) -> float:
    count = len(dpp.submissions)
    if count == 0 or not dpp.max_score:
        return 0
    total = sum(s.score or 0 for s in dpp.submissions)
    return round(total / (count * dpp.max_score) * 100, 2)


def analytics(db: Session, dpp: Dpp) -> dict:
    count = len(dpp.submissions)
    total_students = dpp.classroom.student_count if dpp.classroom else 0
    return {
        "dpp_id": dpp.id,
        "title": dpp.title,
        "total_students": total_students,
        "submission_count": count,
        "on_time_submission_count": sum(1 for s in dpp.submissions if not s.is_late),
        "submission_rate": round(count / total_students * 100, 2) if total_students else 0,
        "average_score": round(sum(s.score or 0 for s in dpp.submissions) / count, 2) if count else 0,
        "max_score": dpp.max_score,
        "difficulty_distribution": dpp.difficulty_distribution(),
        "overall_difficulty": dpp.overall_difficulty(),
        "submissions": dpp.submissions,
    }


def detailed_answers(dpp: Dpp, sub: DppSubmission) -> list[dict]:
    questions = dpp.questions or []
    out = []
    for answer in sub.answers or []:
        index = answer["question_index"]
        question = questions[index] if 0 <= index < len(questions) else None
        is_correct = False
        if question is not None:
            correct = correct_option_text(question)
            is_correct = correct is not None and correct == answer["selected_option"]
        out.append(
            {
                "question_index": index,
                "selected_option": answer["selected_option"],
                "is_correct": is_correct,
                "earned_marks": (question.get("marks") or 1) if is_correct else 0,
            }
        )
    return out
