from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from app.schemas.classroom import ClassroomRead


class UpcomingAssignment(BaseModel):
    id: int
    title: str
    classroom_id: int
    due_date: datetime
    total_points: float

    class Config:
        from_attributes = True


class TeacherStats(BaseModel):
    total_classrooms: int
    total_assignments: int
    total_submissions: int
    pending_grading: int


class StudentDashboardStats(BaseModel):
    enrolled_classrooms: int
    total_assignments: int
    completed_assignments: int
    graded_assignments: int


class UserDashboard(BaseModel):
    role: Literal["teacher", "student"]
    teacher_stats: Optional[TeacherStats] = None
    student_stats: Optional[StudentDashboardStats] = None
    recent_classrooms: list[ClassroomRead] = []
    upcoming_assignments: list[UpcomingAssignment] = []
