import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class QuizStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


class SessionStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FLAGGED = "flagged"
    CANCELLED = "cancelled"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"


class Quiz(Base):
    """A timed, optionally proctored quiz that students attempt in sessions."""

    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    instructions = Column(Text, nullable=True)

    # [{type, question, options: [{text, is_correct}], explanation, points, time_limit}]
    questions = Column(JSON, nullable=False, default=list)

    scheduled_start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_end_time = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes

    total_points = Column(Float, nullable=False, default=0)
    passing_score = Column(Float, nullable=False, default=60)  # percentage
    shuffle_questions = Column(Boolean, nullable=False, default=True)
    shuffle_options = Column(Boolean, nullable=False, default=True)
    show_results = Column(Boolean, nullable=False, default=False)
    allow_review = Column(Boolean, nullable=False, default=False)

    is_proctored = Column(Boolean, nullable=False, default=True)
    proctoring_settings = Column(JSON, nullable=False, default=dict)

    status = Column(String(20), nullable=False, default=QuizStatus.SCHEDULED.value, index=True)
    attempts = Column(Integer, nullable=False, default=1)
    total_students_invited = Column(Integer, nullable=False, default=0)

    tags = Column(JSON, nullable=False, default=list)
    difficulty = Column(String(10), nullable=False, default="medium")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    classroom = relationship("Classroom")
    teacher = relationship("User")
    sessions = relationship(
        "QuizSession", back_populates="quiz", cascade="all, delete-orphan"
    )


class QuizSession(Base):
    """One student attempt; keeps its own snapshot of the (shuffled) questions."""

    __tablename__ = "quiz_sessions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=SessionStatus.IN_PROGRESS.value, index=True)
    attempt_number = Column(Integer, nullable=False, default=1)

    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    time_remaining = Column(Integer, nullable=False, default=0)  # seconds allotted at start

    # [{question_index, question, options: [{text, is_correct}], points}]
    questions = Column(JSON, nullable=False, default=list)
    # [{question_index, selected_options, is_correct, points_earned, time_spent}]
    answers = Column(JSON, nullable=False, default=list)

    points_earned = Column(Float, nullable=False, default=0)
    total_points = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    letter_grade = Column(String(2), nullable=True)
    passed = Column(Boolean, nullable=False, default=False)

    proctoring_data = Column(JSON, nullable=False, default=dict)
    violations = Column(JSON, nullable=False, default=list)
    violation_count = Column(Integer, nullable=False, default=0)
    risk_score = Column(Integer, nullable=False, default=0)

    review_status = Column(String(30), nullable=False, default=ReviewStatus.PENDING.value)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    final_decision = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("quiz_id", "student_id", "attempt_number", name="uq_quiz_session_attempt"),
    )

    quiz = relationship("Quiz", back_populates="sessions")
    student = relationship("User", foreign_keys=[student_id])
