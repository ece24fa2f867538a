from datetime import datetime

from pydantic import BaseModel

from app.schemas.common import Pagination


class QuestionOptions(BaseModel):
    A: str
    B: str
    C: str
    D: str


class QuestionSummary(BaseModel):
    id: int
    category: str
    difficulty: str
    question: str
    tags: list[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class QuestionDetail(QuestionSummary):
    options: QuestionOptions
    correct_answer: str
    explanation: str | None = None


class QuestionPage(BaseModel):
    questions: list[QuestionSummary]
    pagination: Pagination


class QuestionCount(BaseModel):
    count: int


class DifficultyCounts(BaseModel):
    easy: int = 0
    medium: int = 0
    hard: int = 0
    total: int = 0


class CategoryCounts(BaseModel):
    quantitative: DifficultyCounts
    logical: DifficultyCounts
    verbal: DifficultyCounts
