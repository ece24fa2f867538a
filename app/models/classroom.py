import enum
import secrets
import string

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base

CLASS_CODE_ALPHABET = string.ascii_uppercase + string.digits
CLASS_CODE_LENGTH = 6


class Level(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


ALL_LEVELS = [level.value for level in Level]


def generate_class_code() -> str:
    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    subject = Column(String(100), nullable=False)
    class_code = Column(String(6), unique=True, index=True, nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    allow_student_posts = Column(Boolean, default=True, nullable=False)
    allow_student_comments = Column(Boolean, default=True, nullable=False)

    total_assignments = Column(Integer, default=0, nullable=False)
    total_posts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    teacher = relationship("User")
    members = relationship(
        "ClassroomMember", back_populates="classroom", cascade="all, delete-orphan"
    )
    assignments = relationship(
        "Assignment", back_populates="classroom", cascade="all, delete-orphan"
    )

    @property
    def student_count(self) -> int:
        return len(self.members)


class ClassroomMember(Base):
    __tablename__ = "classroom_members"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    level = Column(String(20), nullable=False, default=Level.BEGINNER.value)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("classroom_id", "student_id", name="uq_classroom_member"),
    )

    classroom = relationship("Classroom", back_populates="members")
    student = relationship("User", back_populates="memberships")
