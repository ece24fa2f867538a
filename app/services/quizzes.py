"""Scheduled, timed quizzes and the student sessions that attempt them.

A quiz's stored status only distinguishes draft, scheduled and cancelled;
whether it is running or over follows from its window (see current_status).
Each session keeps its own snapshot of the shuffled questions and is scored
against that snapshot, one answer per question.
"""
import logging
import random
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import (
    CRITICAL_VIOLATIONS_TO_TERMINATE,
    RISK_FLAG_THRESHOLD,
    RISK_TERMINATE_THRESHOLD,
    VIOLATION_SEVERITY_RISK,
)
from app.core.errors import AccessDenied, ConflictError, NotFound, RuleViolation, ValidationFailed
from app.core.timeutils import as_utc
from app.models.classroom import Classroom
from app.models.quiz import Quiz, QuizSession, QuizStatus, ReviewStatus, SessionStatus
from app.models.user import Role, User
from app.services.announcements import post_announcement
from app.services.classrooms import get_member
from app.services.grading import calculate_grade, letter_grade, score_quiz_answer

logger = logging.getLogger(__name__)

FINISHED_STATUSES = (
    SessionStatus.SUBMITTED.value,
    SessionStatus.COMPLETED.value,
    SessionStatus.FLAGGED.value,
)
EXPIRED = "Session has expired and been automatically submitted"


def _commit(db: Session, obj):
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(obj)
    return obj


def _question_points(question: dict) -> float:
    points = question.get("points")
    return 1 if points is None else points


def ensure_quiz_exists(db: Session, quiz_id: int) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise NotFound("Quiz not found")
    return quiz


def ensure_quiz_owner(quiz: Quiz, teacher: User, action: str) -> None:
    if quiz.teacher_id != teacher.id:
        raise AccessDenied(f"Only the quiz creator can {action} this quiz")


def ensure_quiz_access(db: Session, quiz: Quiz, user: User) -> None:
    if user.role == Role.TEACHER:
        allowed = quiz.teacher_id == user.id
    else:
        allowed = get_member(db, quiz.classroom_id, user.id) is not None
    if not allowed:
        raise AccessDenied("Access denied to this quiz")


def validate_questions(questions: list[dict]) -> None:
    if not questions:
        raise ValidationFailed("Quiz must have at least one question")
    for number, q in enumerate(questions, start=1):
        options = q.get("options") or []
        if not (q.get("question") or "").strip() or len(options) < 2:
            raise ValidationFailed(
                f"Question {number} must have a question text and at least 2 options"
            )
        if not any(o.get("is_correct") for o in options):
            raise ValidationFailed(f"Question {number} must have at least one correct answer")


def _check_window(start: datetime, end: datetime, now: datetime) -> None:
    if as_utc(start) <= as_utc(now):
        raise ValidationFailed("Quiz start time must be in the future")
    if as_utc(end) <= as_utc(start):
        raise ValidationFailed("Quiz end time must be after start time")


def current_status(quiz: Quiz, now: datetime) -> str:
    if quiz.status in (QuizStatus.DRAFT.value, QuizStatus.CANCELLED.value):
        return quiz.status
    now = as_utc(now)
    if now < as_utc(quiz.scheduled_start_time):
        return QuizStatus.SCHEDULED.value
    if now > as_utc(quiz.scheduled_end_time):
        return QuizStatus.ENDED.value
    return QuizStatus.ACTIVE.value


def can_attempt(quiz: Quiz, now: datetime) -> bool:
    return current_status(quiz, now) == QuizStatus.ACTIVE.value


def create(db: Session, teacher: User, data: dict, now: datetime) -> Quiz:
    classroom = db.query(Classroom).filter(Classroom.id == data["classroom_id"]).first()
    if not classroom:
        raise NotFound("Classroom not found")
    if classroom.teacher_id != teacher.id:
        raise AccessDenied("Only the classroom teacher can create quizzes")

    _check_window(data["scheduled_start_time"], data["scheduled_end_time"], now)
    questions = data.get("questions") or []
    validate_questions(questions)

    quiz = Quiz(
        classroom_id=classroom.id,
        teacher_id=teacher.id,
        title=data["title"],
        description=data.get("description"),
        instructions=data.get("instructions"),
        questions=questions,
        scheduled_start_time=data["scheduled_start_time"],
        scheduled_end_time=data["scheduled_end_time"],
        duration=data["duration"],
        total_points=sum(_question_points(q) for q in questions),
        passing_score=data.get("passing_score", 60),
        shuffle_questions=data.get("shuffle_questions", True),
        shuffle_options=data.get("shuffle_options", True),
        show_results=data.get("show_results", False),
        allow_review=data.get("allow_review", False),
        is_proctored=data.get("is_proctored", True),
        proctoring_settings=data.get("proctoring_settings") or {},
        status=QuizStatus.SCHEDULED.value,
        attempts=data.get("attempts", 1),
        total_students_invited=classroom.student_count,
        tags=data.get("tags") or [],
        difficulty=data.get("difficulty") or "medium",
    )
    db.add(quiz)
    quiz = _commit(db, quiz)
    logger.info("Quiz %s scheduled in classroom %s", quiz.id, classroom.id)

    post_announcement(
        db,
        classroom.id,
        teacher.id,
        f"Quiz scheduled: {quiz.title}",
        f"{len(questions)} questions, {quiz.total_points:g} points, {quiz.duration} minutes. "
        f"Passing score {quiz.passing_score:g}%.",
    )
    return quiz


def update(db: Session, quiz: Quiz, changes: dict, now: datetime) -> Quiz:
    status = current_status(quiz, now)
    if status == QuizStatus.ACTIVE.value:
        raise RuleViolation("Cannot update an active quiz")
    if status == QuizStatus.ENDED.value:
        raise RuleViolation("Cannot update an ended quiz")
    if quiz.sessions:
        raise RuleViolation("Cannot update quiz after students have started attempting it")

    if "scheduled_start_time" in changes or "scheduled_end_time" in changes:
        _check_window(
            changes.get("scheduled_start_time", quiz.scheduled_start_time),
            changes.get("scheduled_end_time", quiz.scheduled_end_time),
            now,
        )
    if "questions" in changes:
        validate_questions(changes["questions"])
        changes["total_points"] = sum(_question_points(q) for q in changes["questions"])
    for field, value in changes.items():
        setattr(quiz, field, value)
    return _commit(db, quiz)


def delete(db: Session, quiz: Quiz, now: datetime) -> str:
    """Cancel quizzes that already have finished attempts; delete the rest."""
    quiz_id = quiz.id
    if current_status(quiz, now) == QuizStatus.ACTIVE.value:
        raise RuleViolation("Cannot delete an active quiz. Please end it first.")

    finished = any(
        s.status in (SessionStatus.SUBMITTED.value, SessionStatus.COMPLETED.value)
        for s in quiz.sessions
    )
    if finished:
        quiz.status = QuizStatus.CANCELLED.value
        outcome = "cancelled"
    else:
        db.delete(quiz)
        outcome = "deleted"
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Quiz %s %s", quiz_id, outcome)
    return outcome


def student_sessions(db: Session, quiz_id: int, student_id: int) -> list[QuizSession]:
    return (
        db.query(QuizSession)
        .filter(QuizSession.quiz_id == quiz_id, QuizSession.student_id == student_id)
        .order_by(QuizSession.attempt_number.desc())
        .all()
    )


def build_session_questions(quiz: Quiz, rng: random.Random) -> list[dict]:
    snapshot = []
    for index, q in enumerate(quiz.questions or []):
        options = [dict(o) for o in q.get("options") or []]
        if quiz.shuffle_options:
            rng.shuffle(options)
        snapshot.append(
            {
                "question_index": index,
                "question": q.get("question"),
                "options": options,
                "points": _question_points(q),
            }
        )
    if quiz.shuffle_questions:
        rng.shuffle(snapshot)
    return snapshot


def start_session(db: Session, quiz: Quiz, student: User, now: datetime, rng: random.Random | None = None) -> QuizSession:
    if get_member(db, quiz.classroom_id, student.id) is None:
        raise AccessDenied("Access denied to this quiz")
    if not can_attempt(quiz, now):
        raise RuleViolation("Quiz is not available for attempt at this time")

    previous = student_sessions(db, quiz.id, student.id)
    if len(previous) >= quiz.attempts:
        raise RuleViolation(f"Maximum attempts ({quiz.attempts}) reached for this quiz")
    if any(s.status == SessionStatus.IN_PROGRESS.value for s in previous):
        raise ConflictError("You already have an active session for this quiz")

    until_end = int((as_utc(quiz.scheduled_end_time) - as_utc(now)).total_seconds())
    session = QuizSession(
        quiz_id=quiz.id,
        student_id=student.id,
        classroom_id=quiz.classroom_id,
        status=SessionStatus.IN_PROGRESS.value,
        attempt_number=len(previous) + 1,
        started_at=now,
        time_remaining=max(0, min(quiz.duration * 60, until_end)),
        questions=build_session_questions(quiz, rng or random.Random()),
        answers=[],
        total_points=quiz.total_points,
        proctoring_data={},
        violations=[],
    )
    db.add(session)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already have an active session for this quiz")
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    logger.info("Quiz session %s started: quiz %s, student %s", session.id, quiz.id, student.id)
    return session


def time_left(session: QuizSession, now: datetime) -> int:
    elapsed = (as_utc(now) - as_utc(session.started_at)).total_seconds()
    return max(0, int(session.time_remaining - elapsed))


def active_session(db: Session, quiz_id: int, student_id: int) -> QuizSession | None:
    return (
        db.query(QuizSession)
        .filter(
            QuizSession.quiz_id == quiz_id,
            QuizSession.student_id == student_id,
            QuizSession.status == SessionStatus.IN_PROGRESS.value,
        )
        .first()
    )


def ensure_active_session(db: Session, session_id: int, student: User) -> QuizSession:
    session = (
        db.query(QuizSession)
        .filter(
            QuizSession.id == session_id,
            QuizSession.student_id == student.id,
            QuizSession.status == SessionStatus.IN_PROGRESS.value,
        )
        .first()
    )
    if not session:
        raise NotFound("Active session not found")
    return session


def ensure_session(db: Session, session_id: int) -> QuizSession:
    session = db.query(QuizSession).filter(QuizSession.id == session_id).first()
    if not session:
        raise NotFound("Session not found")
    return session


def risk_score(violations: list[dict], proctoring_data: dict) -> int:
    score = sum(VIOLATION_SEVERITY_RISK.get(v.get("severity"), 0) for v in violations)
    if (proctoring_data.get("tab_switches") or 0) > 5:
        score += 20
    if (proctoring_data.get("look_away_count") or 0) > 10:
        score += 15
    if proctoring_data.get("multiple_faces_detected"):
        score += 25
    if proctoring_data.get("face_detected") is False:
        score += 40
    return min(score, 100)


def finalize(session: QuizSession, quiz: Quiz, now: datetime) -> QuizSession:
    """Score and close an in-progress session; flags it when the risk is high."""
    elapsed = int((as_utc(now) - as_utc(session.started_at)).total_seconds())
    session.status = SessionStatus.SUBMITTED.value
    session.submitted_at = now
    session.time_spent = max(0, min(elapsed, session.time_remaining))

    answers = session.answers or []
    session.points_earned = sum(a.get("points_earned") or 0 for a in answers)
    session.percentage, session.letter_grade = calculate_grade(session.points_earned, session.total_points)
    session.passed = bool(session.total_points) and (
        session.points_earned / session.total_points * 100 >= quiz.passing_score
    )

    session.risk_score = risk_score(session.violations or [], session.proctoring_data or {})
    if session.risk_score >= RISK_FLAG_THRESHOLD:
        session.status = SessionStatus.FLAGGED.value
        session.review_status = ReviewStatus.NEEDS_MANUAL_REVIEW.value
    return session


def refresh_if_expired(db: Session, session: QuizSession, now: datetime) -> bool:
    """Auto-submit a session whose time is up. Returns True when it did."""
    if time_left(session, now) > 0:
        return False
    finalize(session, session.quiz, now)
    _commit(db, session)
    logger.info("Quiz session %s auto-submitted at time limit", session.id)
    return True


def _expire_if_over(db: Session, session: QuizSession, now: datetime) -> None:
    if refresh_if_expired(db, session, now):
        raise RuleViolation(EXPIRED)


def _score_answer(session: QuizSession, question_index: int, selected: list[str], spent: int) -> dict:
    question = next(
        (q for q in session.questions or [] if q["question_index"] == question_index), None
    )
    if question is None:
        raise ValidationFailed(f"Question {question_index} is not part of this quiz")
    is_correct, earned = score_quiz_answer(question, selected)
    return {
        "question_index": question_index,
        "selected_options": list(selected),
        "is_correct": is_correct,
        "points_earned": earned,
        "time_spent": spent,
    }


def submit_answer(db: Session, session: QuizSession, question_index: int, selected: list[str], spent: int, now: datetime) -> int:
    """Record (or replace) the answer for one question; returns seconds left."""
    _expire_if_over(db, session, now)
    answer = _score_answer(session, question_index, selected, spent)
    others = [a for a in session.answers or [] if a["question_index"] != question_index]
    # JSON columns only persist on reassignment
    session.answers = others + [answer]
    _commit(db, session)
    return time_left(session, now)


def save_answers(db: Session, session: QuizSession, answers: dict[int, list[str]], now: datetime) -> int:
    _expire_if_over(db, session, now)
    previous = {a["question_index"]: a for a in session.answers or []}
    for question_index, selected in answers.items():
        spent = previous.get(question_index, {}).get("time_spent", 0)
        previous[question_index] = _score_answer(session, question_index, selected, spent)
    session.answers = sorted(previous.values(), key=lambda a: a["question_index"])
    _commit(db, session)
    return len(session.answers)


def submit_session(db: Session, session: QuizSession, now: datetime) -> QuizSession:
    finalize(session, session.quiz, now)
    session = _commit(db, session)
    logger.info(
        "Quiz session %s submitted: %s/%s, risk %s",
        session.id, session.points_earned, session.total_points, session.risk_score,
    )
    return session


def update_proctoring(db: Session, session: QuizSession, data: dict) -> QuizSession:
    session.proctoring_data = {**(session.proctoring_data or {}), **data}
    session.risk_score = risk_score(session.violations or [], session.proctoring_data)
    return _commit(db, session)


def report_violation(db: Session, session: QuizSession, violation: dict, now: datetime) -> bool:
    """Append a violation and re-score; returns True when the session was terminated."""
    entry = dict(violation)
    entry["timestamp"] = as_utc(now).isoformat()
    session.violations = (session.violations or []) + [entry]
    session.violation_count = len(session.violations)
    session.risk_score = risk_score(session.violations, session.proctoring_data or {})

    criticals = sum(1 for v in session.violations if v.get("severity") == "critical")
    terminated = (
        session.risk_score >= RISK_TERMINATE_THRESHOLD
        or criticals >= CRITICAL_VIOLATIONS_TO_TERMINATE
    )
    if terminated:
        finalize(session, session.quiz, now)
        session.status = SessionStatus.FLAGGED.value
        session.review_status = ReviewStatus.NEEDS_MANUAL_REVIEW.value
        logger.warning("Quiz session %s terminated for violations (risk %s)", session.id, session.risk_score)
    _commit(db, session)
    return terminated


def review(
    db: Session,
    session: QuizSession,
    teacher: User,
    decision: str,
    notes: str | None,
    score_adjustment: float | None,
    now: datetime,
) -> QuizSession:
    quiz = session.quiz
    if quiz.teacher_id != teacher.id:
        raise AccessDenied("Only the quiz creator can review this session")
    if session.status == SessionStatus.IN_PROGRESS.value:
        raise RuleViolation("Cannot review a session that is still in progress")

    session.review_status = ReviewStatus.APPROVED.value
    session.reviewed_by = teacher.id
    session.reviewed_at = now
    session.review_notes = notes
    session.final_decision = decision

    if score_adjustment is not None:
        percentage = min(100.0, max(0.0, score_adjustment))
        session.percentage = round(percentage, 2)
        session.letter_grade = letter_grade(percentage)
        session.passed = percentage >= quiz.passing_score

    if decision in ("accept", "partial_credit"):
        session.status = SessionStatus.COMPLETED.value
    elif decision == "reject":
        session.status = SessionStatus.FLAGGED.value
        session.percentage = 0
        session.letter_grade = letter_grade(0)
        session.passed = False
    elif decision == "retake_required":
        session.status = SessionStatus.CANCELLED.value

    session = _commit(db, session)
    logger.info("Quiz session %s reviewed by %s: %s", session.id, teacher.id, decision)
    return session


def review_queue(db: Session, classroom_id: int, status: str, risk_level: str, page: int, limit: int) -> tuple[list[QuizSession], int]:
    q = db.query(QuizSession).filter(QuizSession.classroom_id == classroom_id)
    if status == "needs_review":
        q = q.filter(
            QuizSession.review_status.in_(
                [ReviewStatus.PENDING.value, ReviewStatus.NEEDS_MANUAL_REVIEW.value]
            ),
            QuizSession.status != SessionStatus.IN_PROGRESS.value,
        )
    elif status != "all":
        q = q.filter(QuizSession.status == status)

    if risk_level == "low":
        q = q.filter(QuizSession.risk_score < 30)
    elif risk_level == "medium":
        q = q.filter(QuizSession.risk_score >= 30, QuizSession.risk_score < RISK_FLAG_THRESHOLD)
    elif risk_level == "high":
        q = q.filter(QuizSession.risk_score >= RISK_FLAG_THRESHOLD)

    total = q.count()
    sessions = (
        q.order_by(QuizSession.risk_score.desc(), QuizSession.submitted_at.asc(), QuizSession.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sessions, total
