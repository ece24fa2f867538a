from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Pagination


class DppOption(BaseModel):
    text: str = Field(min_length=1)
    is_correct: bool = False


class DppQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: list[DppOption]
    explanation: Optional[str] = None
    marks: float = 1
    # validated by the service so the error reads like the other DPP rules
    difficulty: Optional[str] = None


class DppFileCreate(BaseModel):
    file_name: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    difficulty: Optional[str] = None
    description: Optional[str] = None
    points: float = 10


class DppFileRead(BaseModel):
    id: int
    file_name: str
    file_url: str
    difficulty: str
    description: Optional[str] = None
    points: float

    class Config:
        from_attributes = True


class DppCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    classroom_id: int
    video_class_id: int
    type: Literal["mcq", "file"]
    questions: list[DppQuestion] = []
    assignment_files: list[DppFileCreate] = []
    instructions: Optional[str] = None
    allowed_file_types: Optional[list[str]] = None
    max_file_size: Optional[int] = None
    max_files: Optional[int] = None
    due_date: Optional[datetime] = None
    tags: list[str] = []
    estimated_time: Optional[int] = None


class DppUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: Optional[Literal["mcq", "file"]] = None
    questions: Optional[list[DppQuestion]] = None
    instructions: Optional[str] = None
    allowed_file_types: Optional[list[str]] = None
    max_file_size: Optional[int] = None
    max_files: Optional[int] = None
    due_date: Optional[datetime] = None
    tags: Optional[list[str]] = None
    estimated_time: Optional[int] = None


class DppAnswer(BaseModel):
    question_index: int = Field(ge=0)
    selected_option: str


class DppMcqSubmit(BaseModel):
    answers: list[DppAnswer]


class DppGradeRequest(BaseModel):
    score: float
    feedback: Optional[str] = None


class DppFileSubmissionRead(BaseModel):
    file_name: str
    file_size: Optional[int] = None
    assignment_file_id: Optional[int] = None
    difficulty: Optional[str] = None


class DppSubmissionRead(BaseModel):
    id: int
    dpp_id: int
    student_id: int
    submitted_at: datetime
    answers: list[DppAnswer] = []
    file_submissions: list[DppFileSubmissionRead] = []
    score: float
    max_score: float
    is_late: bool
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
    graded_by: Optional[int] = None

    class Config:
        from_attributes = True


class DppRead(BaseModel):
    id: int
    classroom_id: int
    video_class_id: int
    teacher_id: int
    title: str
    description: Optional[str] = None
    type: str
    questions: list[DppQuestion] = []
    assignment_files: list[DppFileRead] = []
    instructions: Optional[str] = None
    allowed_file_types: list[str] = []
    max_file_size: int
    max_files: int
    due_date: datetime
    max_score: float
    is_published: bool
    published_at: Optional[datetime] = None
    tags: list[str] = []
    estimated_time: int
    created_at: datetime

    class Config:
        from_attributes = True


class DppListItem(DppRead):
    submission_count: int = 0
    is_overdue: bool = False
    # student view
    has_submitted: Optional[bool] = None
    my_submission: Optional[DppSubmissionRead] = None
    # teacher view
    average_score: Optional[float] = None


class DppPage(BaseModel):
    dpps: list[DppListItem]
    pagination: Pagination


class DifficultyDistribution(BaseModel):
    easy: int = 0
    medium: int = 0
    hard: int = 0


class DppAnalytics(BaseModel):
    dpp_id: int
    title: str
    total_students: int
    submission_count: int
    on_time_submission_count: int
    submission_rate: float
    average_score: float
    max_score: float
    difficulty_distribution: DifficultyDistribution
    overall_difficulty: str
    submissions: list[DppSubmissionRead] = []


class DppAnswerDetail(DppAnswer):
    is_correct: bool
    earned_marks: float


class DppSubmissionDetail(DppSubmissionRead):
    student_name: Optional[str] = None
    detailed_answers: list[DppAnswerDetail] = []
