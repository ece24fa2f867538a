from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

AssignmentType = Literal["assignment", "quiz", "test", "mcq", "file"]
LevelName = Literal["beginner", "intermediate", "advanced"]


class QuestionCreate(BaseModel):
    question: str = Field(min_length=1)
    type: Literal["mcq", "text", "file"] = "mcq"
    options: list[str] = []
    correct_answer: Optional[str] = None
    points: float = Field(default=1, ge=0)
    explanation: Optional[str] = None


class QuestionRead(BaseModel):
    id: int
    question: str
    type: str
    options: list[str]
    correct_answer: Optional[str] = None
    points: float
    explanation: Optional[str] = None

    class Config:
        from_attributes = True


class AttachmentRead(BaseModel):
    id: int
    file_name: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    type: AssignmentType = "assignment"
    total_points: float = Field(default=100, ge=0)
    due_date: datetime
    allow_late_submission: bool = False
    target_levels: Optional[list[LevelName]] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=1)
    questions: list[QuestionCreate] = []
    is_published: bool = True


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    total_points: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None
    allow_late_submission: Optional[bool] = None
    target_levels: Optional[list[LevelName]] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = None


class AssignmentRead(BaseModel):
    id: int
    classroom_id: int
    teacher_id: int
    title: str
    description: str
    type: str
    instructions: Optional[str] = None
    total_points: float
    due_date: datetime
    allow_late_submission: bool
    target_levels: list[str]
    time_limit: Optional[int] = None
    is_published: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    questions: list[QuestionRead] = []
    attachments: list[AttachmentRead] = []

    class Config:
        from_attributes = True


class SubmissionCounts(BaseModel):
    total: int
    graded: int
    pending: int


class AssignmentListItem(AssignmentRead):
    # student view
    submission_status: Optional[str] = None
    # teacher view
    submission_counts: Optional[SubmissionCounts] = None
