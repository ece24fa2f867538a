from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from app.schemas.common import Pagination

StatusName = Literal["present", "absent", "late"]


class MarkAttendanceRequest(BaseModel):
    status: StatusName = "present"


class AttendanceRead(BaseModel):
    id: int
    student_id: int
    classroom_id: int
    video_class_id: int
    status: str
    joined_at: datetime | None = None
    left_at: datetime | None = None
    duration: int
    class_start_time: datetime
    class_end_time: datetime
    attendance_percentage: int
    is_late_join: bool
    late_by_minutes: int
    is_early_leave: bool
    early_leave_minutes: int
    created_at: datetime

    class Config:
        from_attributes = True


class AttendanceRecord(AttendanceRead):
    student_name: str | None = None
    video_class_title: str | None = None


class AttendanceResponse(BaseModel):
    message: str
    attendance: AttendanceRead


class StudentStats(BaseModel):
    total_classes: int = 0
    present: int = 0
    late: int = 0
    absent: int = 0
    total_duration: int = 0
    average_attendance_percentage: float = 0
    attendance_percentage: int = 0


class ClassroomStudentStats(BaseModel):
    student_id: int
    name: str | None = None
    email: str | None = None
    total_classes: int
    present: int
    late: int
    absent: int
    total_duration: int
    average_attendance_percentage: float
    attendance_percentage: float


class ClassroomStats(BaseModel):
    classroom_id: int
    classroom_name: str
    total_classes: int
    total_students: int
    average_attendance_rate: float
    student_stats: list[ClassroomStudentStats]


class RecordPage(BaseModel):
    attendance_records: list[AttendanceRecord]
    pagination: Pagination


class StudentHistory(BaseModel):
    student_id: int
    attendance_history: list[AttendanceRecord]
    stats: StudentStats
    pagination: Pagination


class BulkMarkItem(BaseModel):
    student_id: int
    status: StatusName = "present"


class BulkMarkRequest(BaseModel):
    attendance_records: list[BulkMarkItem]


class BulkMarkResult(BaseModel):
    student_id: int
    success: bool
    attendance: AttendanceRead | None = None
    error: str | None = None


class BulkMarkResponse(BaseModel):
    message: str
    results: list[BulkMarkResult]


class AttendanceDashboard(BaseModel):
    type: Literal["teacher", "student"]
    classroom_id: int
    classroom_name: str
    # teacher
    total_students: int | None = None
    total_classes: int | None = None
    average_attendance: int | None = None
    student_stats: list[ClassroomStudentStats] | None = None
    # student
    stats: StudentStats | None = None
    attendance_goal: int | None = None
    recent_attendance: list[AttendanceRecord] = []


class SyncAbsencesResult(BaseModel):
    message: str
    classes_processed: int
    new_absences_marked: int
