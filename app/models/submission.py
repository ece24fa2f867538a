import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class SubmissionStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    GRADED = "graded"
    RETURNED = "returned"


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=SubmissionStatus.DRAFT.value)
    content = Column(Text, nullable=True)
    # [{question_id, answer, is_correct, points_earned}]
    answers = Column(JSON, nullable=False, default=list)
    # [{file_name, storage_key, file_size, file_type}]
    attachments = Column(JSON, nullable=False, default=list)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    is_late_submission = Column(Boolean, nullable=False, default=False)
    time_spent = Column(Integer, nullable=True)  # minutes

    # Grading fields (nullable until graded)
    points = Column(Float, nullable=True)
    percentage = Column(Float, nullable=True)
    letter_grade = Column(String(2), nullable=True)
    feedback = Column(Text, nullable=True)
    rubric_scores = Column(JSON, nullable=False, default=list)
    graded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User", back_populates="submissions", foreign_keys=[student_id])

    @property
    def grade(self) -> dict | None:
        if self.points is None:
            return None
        return {
            "points": self.points,
            "percentage": self.percentage,
            "letter_grade": self.letter_grade,
            "feedback": self.feedback,
            "rubric_scores": self.rubric_scores or [],
        }
