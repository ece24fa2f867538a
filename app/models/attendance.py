import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    video_class_id = Column(Integer, ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(10), nullable=False, default=AttendanceStatus.PRESENT.value)
    joined_at = Column(DateTime(timezone=True), nullable=True)
    left_at = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # minutes

    class_start_time = Column(DateTime(timezone=True), nullable=False)
    class_end_time = Column(DateTime(timezone=True), nullable=False)
    attendance_percentage = Column(Integer, nullable=False, default=0)

    is_late_join = Column(Boolean, nullable=False, default=False)
    late_by_minutes = Column(Integer, nullable=False, default=0)
    is_early_leave = Column(Boolean, nullable=False, default=False)
    early_leave_minutes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("student_id", "video_class_id", name="uq_attendance_student_class"),
    )

    student = relationship("User")
    video_class = relationship("VideoClass")
