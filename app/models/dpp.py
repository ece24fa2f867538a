from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base

DPP_TYPES = ("mcq", "file")
DIFFICULTIES = ("easy", "medium", "hard")


class Dpp(Base):
    """Daily practice problem set tied to one video class."""

    __tablename__ = "dpps"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    video_class_id = Column(Integer, ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    type = Column(String(10), nullable=False)
    instructions = Column(Text, nullable=True)

    # mcq: [{question, options: [{text, is_correct}], explanation, marks, difficulty}]
    questions = Column(JSON, nullable=False, default=list)

    allowed_file_types = Column(JSON, nullable=False, default=list)
    max_file_size = Column(Integer, nullable=False, default=10 * 1024 * 1024)
    max_files = Column(Integer, nullable=False, default=5)

    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    max_score = Column(Float, nullable=False)
    is_published = Column(Boolean, nullable=False, default=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    estimated_time = Column(Integer, nullable=False, default=30)  # minutes

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    classroom = relationship("Classroom")
    video_class = relationship("VideoClass")
    assignment_files = relationship(
        "DppAssignmentFile", back_populates="dpp", cascade="all, delete-orphan"
    )
    submissions = relationship(
        "DppSubmission", back_populates="dpp", cascade="all, delete-orphan"
    )

    def difficulty_distribution(self) -> dict:
        distribution = {d: 0 for d in DIFFICULTIES}
        if self.type == "mcq":
            items = [q.get("difficulty", "medium") for q in self.questions or []]
        else:
            items = [f.difficulty for f in self.assignment_files]
        for d in items:
            if d in distribution:
                distribution[d] += 1
        return distribution

    def overall_difficulty(self) -> str:
        dist = self.difficulty_distribution()
        total = sum(dist.values())
        if total == 0:
            return "medium"
        if dist["hard"] / total * 100 >= 50:
            return "hard"
        if dist["easy"] / total * 100 >= 50:
            return "easy"
        return "medium"


class DppAssignmentFile(Base):
    __tablename__ = "dpp_assignment_files"

    id = Column(Integer, primary_key=True, index=True)
    dpp_id = Column(Integer, ForeignKey("dpps.id", ondelete="CASCADE"), nullable=False, index=True)

    file_name = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=False)
    difficulty = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    points = Column(Float, nullable=False, default=10)

    dpp = relationship("Dpp", back_populates="assignment_files")


class DppSubmission(Base):
    __tablename__ = "dpp_submissions"

    id = Column(Integer, primary_key=True, index=True)
    dpp_id = Column(Integer, ForeignKey("dpps.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False)
    # mcq: [{question_index, selected_option}]
    answers = Column(JSON, nullable=False, default=list)
    # file: [{file_name, storage_key, file_size, assignment_file_id, difficulty}]
    file_submissions = Column(JSON, nullable=False, default=list)

    score = Column(Float, nullable=False, default=0)
    max_score = Column(Float, nullable=False)
    is_late = Column(Boolean, nullable=False, default=False)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        UniqueConstraint("dpp_id", "student_id", name="uq_dpp_submission_student"),
    )

    dpp = relationship("Dpp", back_populates="submissions")
    student = relationship("User", foreign_keys=[student_id])
