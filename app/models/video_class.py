import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.core.timeutils import as_utc, ceil_minutes
from app.db.base_class import Base


class VideoClassStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


class VideoClass(Base):
    __tablename__ = "video_classes"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)

    scheduled_start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_end_time = Column(DateTime(timezone=True), nullable=False)
    actual_start_time = Column(DateTime(timezone=True), nullable=True)
    actual_end_time = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=VideoClassStatus.SCHEDULED.value)
    class_type = Column(String(20), nullable=False, default="scheduled")  # instant | scheduled

    meeting_id = Column(String(100), nullable=True)
    meeting_password = Column(String(20), nullable=True)
    meeting_url = Column(String(500), nullable=True)
    is_recorded = Column(Boolean, nullable=False, default=False)
    recording_url = Column(String(500), nullable=True)

    allow_late_join = Column(Boolean, nullable=False, default=True)
    max_duration = Column(Integer, nullable=False, default=120)  # minutes

    total_students_invited = Column(Integer, nullable=False, default=0)
    total_students_attended = Column(Integer, nullable=False, default=0)
    attendance_percentage = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    classroom = relationship("Classroom")
    teacher = relationship("User")
    participants = relationship(
        "VideoClassParticipant", back_populates="video_class", cascade="all, delete-orphan"
    )

    @property
    def class_start_time(self):
        return as_utc(self.actual_start_time or self.scheduled_start_time)

    @property
    def class_end_time(self):
        return as_utc(self.actual_end_time or self.scheduled_end_time)

    def participant_for(self, student_id: int):
        for p in self.participants:
            if p.student_id == student_id:
                return p
        return None

    def add_participant(self, student_id: int, now):
        p = self.participant_for(student_id)
        if p is None:
            p = VideoClassParticipant(student_id=student_id, joined_at=now)
            self.participants.append(p)
        else:
            # rejoin reopens the session
            p.joined_at = now
            p.left_at = None
            p.duration = 0
        return p

    def remove_participant(self, student_id: int, now):
        p = self.participant_for(student_id)
        if p is not None and p.left_at is None:
            p.left_at = now
            if p.joined_at is not None:
                p.duration = max(0, ceil_minutes(p.joined_at, now))
        return p


class VideoClassParticipant(Base):
    __tablename__ = "video_class_participants"

    id = Column(Integer, primary_key=True, index=True)
    video_class_id = Column(Integer, ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    joined_at = Column(DateTime(timezone=True), nullable=True)
    left_at = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # minutes

    __table_args__ = (
        UniqueConstraint("video_class_id", "student_id", name="uq_video_class_participant"),
    )

    video_class = relationship("VideoClass", back_populates="participants")
    student = relationship("User")
