from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.classroom import ALL_LEVELS

ASSIGNMENT_TYPES = ("assignment", "quiz", "test", "mcq", "file")
AUTO_GRADED_TYPES = ("quiz", "test", "mcq")


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="assignment")
    instructions = Column(Text, nullable=True)

    total_points = Column(Float, nullable=False, default=100)
    due_date = Column(DateTime(timezone=True), nullable=False)
    allow_late_submission = Column(Boolean, nullable=False, default=False)
    time_limit = Column(Integer, nullable=True)  # minutes
    target_levels = Column(JSON, nullable=False, default=lambda: list(ALL_LEVELS))

    is_published = Column(Boolean, nullable=False, default=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    classroom = relationship("Classroom", back_populates="assignments")
    teacher = relationship("User")

    questions = relationship(
        "AssignmentQuestion",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AssignmentQuestion.position",
    )
    attachments = relationship(
        "AssignmentAttachment", back_populates="assignment", cascade="all, delete-orphan"
    )
    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan")

    @property
    def is_auto_graded(self) -> bool:
        return self.type in AUTO_GRADED_TYPES


class AssignmentQuestion(Base):
    __tablename__ = "assignment_questions"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    question = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="mcq")  # mcq | text | file
    options = Column(JSON, nullable=False, default=list)
    correct_answer = Column(String(500), nullable=True)
    points = Column(Float, nullable=False, default=1)
    explanation = Column(Text, nullable=True)

    assignment = relationship("Assignment", back_populates="questions")


class AssignmentAttachment(Base):
    __tablename__ = "assignment_attachments"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)

    file_name = Column(String(255), nullable=False)
    storage_key = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(100), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    assignment = relationship("Assignment", back_populates="attachments")
