from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import Pagination


class VideoClassSchedule(BaseModel):
    classroom_id: int
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    allow_late_join: bool = True
    is_recorded: bool = False
    max_duration: int = Field(default=120, ge=1)


class InstantClassCreate(BaseModel):
    classroom_id: int
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    duration: int = Field(default=60, ge=1)  # minutes
    allow_late_join: bool = True
    is_recorded: bool = False


class VideoClassUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_start_time: datetime | None = None
    scheduled_end_time: datetime | None = None
    allow_late_join: bool | None = None
    is_recorded: bool | None = None
    max_duration: int | None = Field(default=None, ge=1)


class ParticipantRead(BaseModel):
    student_id: int
    joined_at: datetime | None = None
    left_at: datetime | None = None
    duration: int

    class Config:
        from_attributes = True


class VideoClassRead(BaseModel):
    id: int
    classroom_id: int
    teacher_id: int
    title: str
    description: str | None = None
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    status: str
    class_type: str
    meeting_id: str | None = None
    meeting_password: str | None = None
    meeting_url: str | None = None
    is_recorded: bool
    allow_late_join: bool
    max_duration: int
    total_students_invited: int
    total_students_attended: int
    attendance_percentage: int
    participants: list[ParticipantRead] = []

    class Config:
        from_attributes = True


class VideoClassPage(BaseModel):
    classes: list[VideoClassRead]
    pagination: Pagination


class JoinResult(BaseModel):
    message: str
    meeting_url: str | None = None
    meeting_id: str | None = None
    meeting_password: str | None = None
    video_class: VideoClassRead
