import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import RISK_WARNING_THRESHOLD
from app.core.current_user import get_current_user
from app.core.errors import AccessDenied, NotFound
from app.core.permissions import require_student, require_teacher
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.quiz import Quiz, QuizSession
from app.models.user import Role, User
from app.schemas.common import paginate
from app.schemas.quiz import (
    AnswersSave,
    AnswersSaveResponse,
    AnswerSubmit,
    AnswerSubmitResponse,
    CurrentSessionResponse,
    ProctoringUpdate,
    QuizCreate,
    QuizDeleteResult,
    QuizListItem,
    QuizPage,
    QuizQuestion,
    QuizRead,
    QuizResult,
    QuizSessionRead,
    QuizUpdate,
    ReviewPage,
    ReviewRequest,
    ReviewResponse,
    SessionAnswer,
    SessionQuestion,
    SessionStartResponse,
    SessionSubmitResponse,
    SessionSummary,
    StudentSessionView,
    ViolationReport,
    ViolationResponse,
)
from app.services import quizzes as quiz_service
from app.services.classrooms import ensure_access, ensure_classroom_exists, ensure_owner
from app.services.grading import strip_correct_flags

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(session: QuizSession, show_score: bool = True) -> SessionSummary:
    out = SessionSummary.model_validate(session)
    out.quiz_title = session.quiz.title if session.quiz else None
    out.student_name = session.student.name if session.student else None
    if not show_score:
        out.percentage = None
    return out


def _student_view(session: QuizSession, now) -> StudentSessionView:
    """The in-quiz view: no correct flags and no per-answer scoring."""
    return StudentSessionView(
        id=session.id,
        quiz_id=session.quiz_id,
        quiz_title=session.quiz.title if session.quiz else None,
        status=session.status,
        attempt_number=session.attempt_number,
        started_at=session.started_at,
        submitted_at=session.submitted_at,
        time_spent=session.time_spent,
        time_left=quiz_service.time_left(session, now) if session.status == "in_progress" else 0,
        questions=[
            SessionQuestion.model_validate(q) for q in strip_correct_flags(session.questions or [])
        ],
        answers=[
            SessionAnswer(
                question_index=a["question_index"],
                selected_options=a["selected_options"],
                time_spent=a.get("time_spent", 0),
            )
            for a in session.answers or []
        ],
    )


def _student_item(db: Session, quiz: Quiz, student: User, now) -> QuizListItem:
    item = QuizListItem.model_validate(
        {
            **QuizRead.model_validate(quiz).model_dump(),
            "current_status": quiz_service.current_status(quiz, now),
        }
    )
    item.questions = []
    sessions = quiz_service.student_sessions(db, quiz.id, student.id)
    item.user_attempts = len(sessions)
    item.can_attempt = len(sessions) < quiz.attempts and quiz_service.can_attempt(quiz, now)
    if sessions:
        item.session_status = sessions[0].status
        item.last_attempt = _summary(sessions[0], show_score=quiz.show_results)
    return item


def _teacher_item(quiz: Quiz, now) -> QuizListItem:
    item = QuizListItem.model_validate(
        {
            **QuizRead.model_validate(quiz).model_dump(),
            "current_status": quiz_service.current_status(quiz, now),
        }
    )
    item.session_count = len(quiz.sessions)
    return item


def _student_filter(item: QuizListItem, wanted: str) -> bool:
    if wanted == "available":
        return item.user_attempts == 0 and bool(item.can_attempt)
    if wanted == "attempted":
        return item.session_status == "in_progress"
    if wanted == "completed":
        return item.session_status in quiz_service.FINISHED_STATUSES
    return True


@router.post("", response_model=QuizRead, status_code=status.HTTP_201_CREATED)
def create_quiz(
    payload: QuizCreate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return quiz_service.create(db, teacher, payload.model_dump(), utcnow())


@router.get("/classroom/{classroom_id}", response_model=QuizPage)
def list_classroom_quizzes(
    classroom_id: int,
    status_filter: Literal[
        "all", "scheduled", "active", "ended", "cancelled", "available", "attempted", "completed"
    ] = Query(default="all", alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)

    now = utcnow()
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.classroom_id == classroom_id)
        .order_by(Quiz.scheduled_start_time.desc(), Quiz.id.desc())
        .all()
    )
    # status is derived from the schedule and the caller's attempts, so filter in Python
    if me.role == Role.STUDENT:
        items = [_student_item(db, q, me, now) for q in quizzes]
        if status_filter in ("available", "attempted", "completed"):
            items = [i for i in items if _student_filter(i, status_filter)]
        elif status_filter != "all":
            items = [i for i in items if i.current_status == status_filter]
    else:
        items = [_teacher_item(q, now) for q in quizzes]
        if status_filter != "all":
            items = [i for i in items if i.current_status == status_filter]

    total = len(items)
    items = items[(page - 1) * limit: page * limit]
    return {"quizzes": items, "pagination": paginate(page, limit, total, len(items))}


@router.get("/classroom/{classroom_id}/active", response_model=list[QuizListItem])
def active_quizzes(
    classroom_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)

    now = utcnow()
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.classroom_id == classroom_id)
        .order_by(Quiz.scheduled_start_time.asc())
        .all()
    )
    quizzes = [q for q in quizzes if quiz_service.can_attempt(q, now)]
    if me.role == Role.STUDENT:
        return [_student_item(db, q, me, now) for q in quizzes]
    return [_teacher_item(q, now) for q in quizzes]


@router.get("/classroom/{classroom_id}/sessions/mine", response_model=list[SessionSummary])
def my_sessions(
    classroom_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, student)
    sessions = (
        db.query(QuizSession)
        .filter(QuizSession.classroom_id == classroom_id, QuizSession.student_id == student.id)
        .order_by(QuizSession.started_at.desc(), QuizSession.id.desc())
        .all()
    )
    return [_summary(s, show_score=s.quiz.show_results) for s in sessions]


@router.get("/classroom/{classroom_id}/sessions/review", response_model=ReviewPage)
def sessions_for_review(
    classroom_id: int,
    status_filter: Literal[
        "all", "needs_review", "in_progress", "submitted", "completed", "flagged", "cancelled"
    ] = Query(default="all", alias="status"),
    risk_level: Literal["all", "low", "medium", "high"] = Query(default="all"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_owner(classroom, teacher)
    sessions, total = quiz_service.review_queue(db, classroom_id, status_filter, risk_level, page, limit)
    items = [_summary(s) for s in sessions]
    return {"sessions": items, "pagination": paginate(page, limit, total, len(items))}


@router.get("/{quiz_id}", response_model=QuizListItem)
def get_quiz(
    quiz_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    quiz = quiz_service.ensure_quiz_exists(db, quiz_id)
    quiz_service.ensure_quiz_access(db, quiz, me)
    if me.role == Role.STUDENT:
        return _student_item(db, quiz, me, utcnow())
    return _teacher_item(quiz, utcnow())


@router.put("/{quiz_id}", response_model=QuizRead)
def update_quiz(
    quiz_id: int,
    payload: QuizUpdate,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    quiz = quiz_service.ensure_quiz_exists(db, quiz_id)
    quiz_service.ensure_quiz_owner(quiz, teacher, "update")
    return quiz_service.update(db, quiz, payload.model_dump(exclude_unset=True), utcnow())


@router.delete("/{quiz_id}", response_model=QuizDeleteResult)
def delete_quiz(
    quiz_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    quiz = quiz_service.ensure_quiz_exists(db, quiz_id)
    quiz_service.ensure_quiz_owner(quiz, teacher, "delete")
    outcome = quiz_service.delete(db, quiz, utcnow())
    if outcome == "cancelled":
        return {"message": "Quiz cancelled because students have already attempted it", "outcome": outcome}
    return {"message": "Quiz deleted successfully", "outcome": outcome}


@router.post("/{quiz_id}/sessions", response_model=SessionStartResponse, status_code=status.HTTP_201_CREATED)
def start_session(
    quiz_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    quiz = quiz_service.ensure_quiz_exists(db, quiz_id)
    now = utcnow()
    session = quiz_service.start_session(db, quiz, student, now)
    return {
        "message": "Quiz session started successfully",
        "session": _student_view(session, now),
        "time_remaining": quiz_service.time_left(session, now),
    }


@router.get("/{quiz_id}/sessions/current", response_model=CurrentSessionResponse)
def current_session(
    quiz_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.active_session(db, quiz_id, student.id)
    if session is None:
        raise NotFound("No active session found for this quiz")
    now = utcnow()
    message = None
    if quiz_service.refresh_if_expired(db, session, now):
        message = "Session automatically submitted due to time limit"
    return {
        "message": message,
        "session": _student_view(session, now),
        "time_remaining": quiz_service.time_left(session, now) if message is None else 0,
    }


@router.post("/sessions/{session_id}/answers", response_model=AnswerSubmitResponse)
def submit_answer(
    session_id: int,
    payload: AnswerSubmit,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.ensure_active_session(db, session_id, student)
    remaining = quiz_service.submit_answer(
        db, session, payload.question_index, payload.selected_options, payload.time_spent, utcnow()
    )
    return {"message": "Answer saved successfully", "time_remaining": remaining}


@router.put("/sessions/{session_id}/answers", response_model=AnswersSaveResponse)
def save_answers(
    session_id: int,
    payload: AnswersSave,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.ensure_active_session(db, session_id, student)
    count = quiz_service.save_answers(db, session, payload.answers, utcnow())
    return {"message": "Answers saved successfully", "answers_count": count}


@router.post("/sessions/{session_id}/submit", response_model=SessionSubmitResponse)
def submit_session(
    session_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.ensure_active_session(db, session_id, student)
    session = quiz_service.submit_session(db, session, utcnow())
    return {
        "message": "Quiz submitted successfully",
        "session_id": session.id,
        "score": session.points_earned,
        "total_points": session.total_points,
        "percentage": session.percentage,
        "letter_grade": session.letter_grade,
        "passed": session.passed,
        "time_spent": session.time_spent,
        "risk_score": session.risk_score,
        "violation_count": session.violation_count,
    }


@router.put("/sessions/{session_id}/proctoring", response_model=StudentSessionView)
def update_proctoring(
    session_id: int,
    payload: ProctoringUpdate,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.ensure_active_session(db, session_id, student)
    session = quiz_service.update_proctoring(db, session, payload.model_dump(exclude_none=True))
    return _student_view(session, utcnow())


@router.post("/sessions/{session_id}/violations", response_model=ViolationResponse)
def report_violation(
    session_id: int,
    payload: ViolationReport,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = quiz_service.ensure_active_session(db, session_id, student)
    terminated = quiz_service.report_violation(db, session, payload.model_dump(), utcnow())
    if terminated:
        return {
            "message": "Quiz session terminated due to multiple violations",
            "terminated": True,
            "risk_score": session.risk_score,
            "violation_count": session.violation_count,
        }
    warning = None
    if session.risk_score >= RISK_WARNING_THRESHOLD:
        warning = "Your behavior is being monitored. Please follow quiz guidelines."
    return {
        "message": "Violation recorded",
        "risk_score": session.risk_score,
        "violation_count": session.violation_count,
        "warning": warning,
    }


@router.get("/sessions/{session_id}/results", response_model=QuizResult)
def session_results(
    session_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = (
        db.query(QuizSession)
        .filter(
            QuizSession.id == session_id,
            QuizSession.student_id == student.id,
            QuizSession.status.in_(quiz_service.FINISHED_STATUSES),
        )
        .first()
    )
    if not session:
        raise NotFound("Quiz results not found")

    quiz = session.quiz
    result = QuizResult(
        session_id=session.id,
        quiz_title=quiz.title,
        status=session.status,
        attempt_number=session.attempt_number,
        submitted_at=session.submitted_at,
        time_spent=session.time_spent,
        risk_score=session.risk_score,
        violation_count=session.violation_count,
        review_status=session.review_status,
    )
    if quiz.show_results:
        result.score = session.points_earned
        result.total_points = session.total_points
        result.percentage = session.percentage
        result.letter_grade = session.letter_grade
        result.passed = session.passed
        if quiz.allow_review:
            result.answers = [SessionAnswer.model_validate(a) for a in session.answers or []]
            result.questions = [QuizQuestion.model_validate(q) for q in quiz.questions or []]
    return result


@router.get("/sessions/{session_id}/student-details", response_model=StudentSessionView)
def student_session_details(
    session_id: int,
    db: Session = Depends(get_db),
    student: User = Depends(require_student),
):
    session = (
        db.query(QuizSession)
        .filter(QuizSession.id == session_id, QuizSession.student_id == student.id)
        .first()
    )
    if not session:
        raise NotFound("Session not found or access denied")
    return _student_view(session, utcnow())


@router.post("/sessions/{session_id}/review", response_model=ReviewResponse)
def review_session(
    session_id: int,
    payload: ReviewRequest,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    session = quiz_service.ensure_session(db, session_id)
    session = quiz_service.review(
        db, session, teacher, payload.decision, payload.notes, payload.score_adjustment, utcnow()
    )
    return {
        "message": "Session review completed successfully",
        "session": {
            "id": session.id,
            "student": session.student.name if session.student else None,
            "decision": payload.decision,
            "final_score": session.percentage,
            "status": session.status,
        },
    }


@router.get("/sessions/{session_id}/details", response_model=QuizSessionRead)
def session_details(
    session_id: int,
    db: Session = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    session = quiz_service.ensure_session(db, session_id)
    if session.quiz.teacher_id != teacher.id:
        raise AccessDenied("Access denied to this session")
    out = QuizSessionRead.model_validate(session)
    out.quiz_title = session.quiz.title
    out.student_name = session.student.name if session.student else None
    return out
