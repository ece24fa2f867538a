from datetime import datetime

from pydantic import BaseModel, Field


class ClassroomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    subject: str = Field(min_length=1, max_length=100)
    allow_student_posts: bool = True
    allow_student_comments: bool = True


class ClassroomUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    subject: str | None = None
    allow_student_posts: bool | None = None
    allow_student_comments: bool | None = None


class ClassroomRead(BaseModel):
    id: int
    name: str
    description: str | None = None
    subject: str
    class_code: str
    teacher_id: int
    is_active: bool
    allow_student_posts: bool
    allow_student_comments: bool
    total_assignments: int
    total_posts: int
    student_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


class JoinClassroomRequest(BaseModel):
    class_code: str = Field(min_length=6, max_length=6)


class LevelUpdate(BaseModel):
    level: str


class ClassroomStudent(BaseModel):
    student_id: int
    name: str
    email: str
    student_code: str | None = None
    level: str
    joined_at: datetime
