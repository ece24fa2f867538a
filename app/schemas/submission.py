from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AnswerIn(BaseModel):
    question_id: int
    answer: str


class AnswerRead(BaseModel):
    question_id: int
    answer: str
    is_correct: Optional[bool] = None
    points_earned: float = 0


class SubmissionCreate(BaseModel):
    content: Optional[str] = None
    answers: Optional[list[AnswerIn]] = None
    time_spent: Optional[int] = None


class McqSubmissionCreate(BaseModel):
    # question id -> chosen answer
    answers: dict[int, str]
    time_spent: Optional[int] = None


class RubricScore(BaseModel):
    criterion: str
    points: float
    feedback: Optional[str] = None


class GradeRequest(BaseModel):
    points: float
    feedback: Optional[str] = None
    rubric_scores: list[RubricScore] = []


class GradeRead(BaseModel):
    points: float
    percentage: Optional[float] = None
    letter_grade: Optional[str] = None
    feedback: Optional[str] = None
    rubric_scores: list[RubricScore] = []


class FileRead(BaseModel):
    file_name: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    status: str
    content: Optional[str] = None
    answers: list[AnswerRead] = []
    attachments: list[FileRead] = []
    submitted_at: Optional[datetime] = None
    is_late_submission: bool = False
    time_spent: Optional[int] = None
    grade: Optional[GradeRead] = None
    graded_by: Optional[int] = None
    graded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class McqSubmissionResult(BaseModel):
    message: str
    score: float
    total_points: float
    percentage: float
    submission: SubmissionRead


class GradeSummaryItem(BaseModel):
    submission_id: int
    assignment_id: int
    assignment_title: str
    classroom_id: int
    points: float
    total_points: float
    percentage: Optional[float] = None
    letter_grade: Optional[str] = None
    graded_at: Optional[datetime] = None


class ClassroomGradeAverage(BaseModel):
    classroom_id: int
    classroom_name: str
    graded: int
    average_percentage: float


class GradesSummary(BaseModel):
    grades: list[GradeSummaryItem]
    classrooms: list[ClassroomGradeAverage]
    overall_average: Optional[float] = Field(default=None)
