from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Pagination

QuestionType = Literal["multiple-choice", "true-false", "single-choice"]
Difficulty = Literal["easy", "medium", "hard"]
ViolationType = Literal[
    "tab_switch",
    "multiple_faces",
    "no_face_detected",
    "look_away",
    "speech_detected",
    "multiple_voices",
    "fullscreen_exit",
    "right_click",
    "keyboard_shortcut",
    "suspicious_behavior",
    "camera_disabled",
    "microphone_disabled",
    "environment_flag",
]
Severity = Literal["low", "medium", "high", "critical"]
Decision = Literal["accept", "reject", "partial_credit", "retake_required"]


class QuizOption(BaseModel):
    text: str
    is_correct: bool = False


class QuizQuestion(BaseModel):
    type: QuestionType = "multiple-choice"
    # emptiness and option counts are checked by the service with numbered messages
    question: str = ""
    options: list[QuizOption] = []
    explanation: Optional[str] = None
    points: float = Field(default=1, ge=0)
    time_limit: int = 60  # seconds


class ProctoringSettings(BaseModel):
    face_detection: bool = True
    tab_switching_detection: bool = True
    audio_monitoring: bool = True
    screen_recording: bool = False
    room_scan: bool = True
    multiple_person_detection: bool = True
    browser_lockdown: bool = True
    allowed_tab_switches: int = 3
    allowed_look_aways: int = 5
    suspicious_behavior_threshold: int = 3


class QuizCreate(BaseModel):
    classroom_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    instructions: Optional[str] = None
    questions: list[QuizQuestion] = []
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    duration: int = Field(ge=1, le=480)
    passing_score: float = Field(default=60, ge=0, le=100)
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_results: bool = False
    allow_review: bool = False
    is_proctored: bool = True
    proctoring_settings: ProctoringSettings = ProctoringSettings()
    attempts: int = Field(default=1, ge=1, le=5)
    tags: list[str] = []
    difficulty: Difficulty = "medium"


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    instructions: Optional[str] = None
    questions: Optional[list[QuizQuestion]] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=1, le=480)
    passing_score: Optional[float] = Field(default=None, ge=0, le=100)
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    show_results: Optional[bool] = None
    allow_review: Optional[bool] = None
    proctoring_settings: Optional[ProctoringSettings] = None
    attempts: Optional[int] = Field(default=None, ge=1, le=5)
    tags: Optional[list[str]] = None
    difficulty: Optional[Difficulty] = None


class QuizRead(BaseModel):
    id: int
    classroom_id: int
    teacher_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    questions: list[QuizQuestion] = []
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    duration: int
    total_points: float
    passing_score: float
    shuffle_questions: bool
    shuffle_options: bool
    show_results: bool
    allow_review: bool
    is_proctored: bool
    proctoring_settings: ProctoringSettings
    status: str
    attempts: int
    total_students_invited: int
    tags: list[str] = []
    difficulty: str
    created_at: datetime

    class Config:
        from_attributes = True


class SessionSummary(BaseModel):
    id: int
    quiz_id: int
    quiz_title: Optional[str] = None
    student_id: int
    student_name: Optional[str] = None
    status: str
    attempt_number: int
    started_at: datetime
    submitted_at: Optional[datetime] = None
    percentage: Optional[float] = None
    risk_score: int = 0
    violation_count: int = 0
    review_status: str

    class Config:
        from_attributes = True


class QuizListItem(QuizRead):
    # derived from the schedule: scheduled, active, ended (or the stored draft/cancelled)
    current_status: str
    # student view
    user_attempts: Optional[int] = None
    can_attempt: Optional[bool] = None
    session_status: Optional[str] = None
    last_attempt: Optional[SessionSummary] = None
    # teacher view
    session_count: Optional[int] = None


class QuizPage(BaseModel):
    quizzes: list[QuizListItem]
    pagination: Pagination


class QuizDeleteResult(BaseModel):
    message: str
    outcome: Literal["cancelled", "deleted"]


class SessionQuestion(BaseModel):
    question_index: int
    question: str
    options: list[QuizOption] = []
    points: float = 1


class SessionAnswer(BaseModel):
    question_index: int
    selected_options: list[str] = []
    is_correct: Optional[bool] = None
    points_earned: Optional[float] = None
    time_spent: int = 0


class StudentSessionView(BaseModel):
    id: int
    quiz_id: int
    quiz_title: Optional[str] = None
    status: str
    attempt_number: int
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_spent: int = 0
    time_left: int = 0
    questions: list[SessionQuestion] = []
    answers: list[SessionAnswer] = []


class SessionStartResponse(BaseModel):
    message: str
    session: StudentSessionView
    time_remaining: int


class CurrentSessionResponse(BaseModel):
    message: Optional[str] = None
    session: StudentSessionView
    time_remaining: int


class AnswerSubmit(BaseModel):
    question_index: int = Field(ge=0)
    selected_options: list[str] = Field(min_length=1)
    time_spent: int = Field(default=0, ge=0)


class AnswerSubmitResponse(BaseModel):
    message: str
    time_remaining: int


class AnswersSave(BaseModel):
    # question index -> selected option texts
    answers: dict[int, list[str]]


class AnswersSaveResponse(BaseModel):
    message: str
    answers_count: int


class SessionSubmitResponse(BaseModel):
    message: str
    session_id: int
    score: float
    total_points: float
    percentage: float
    letter_grade: Optional[str] = None
    passed: bool
    time_spent: int
    risk_score: int
    violation_count: int


class ProctoringUpdate(BaseModel):
    face_detected: Optional[bool] = None
    multiple_faces_detected: Optional[bool] = None
    face_confidence: Optional[float] = None
    tab_switches: Optional[int] = Field(default=None, ge=0)
    look_away_count: Optional[int] = Field(default=None, ge=0)
    look_away_duration: Optional[int] = Field(default=None, ge=0)
    suspicious_movements: Optional[int] = Field(default=None, ge=0)
    speech_detected: Optional[bool] = None
    multiple_voices_detected: Optional[bool] = None
    noise_level: Optional[float] = None
    room_scan_completed: Optional[bool] = None
    environment_flags: Optional[list[str]] = None
    fullscreen_exited: Optional[int] = Field(default=None, ge=0)
    right_click_attempts: Optional[int] = Field(default=None, ge=0)
    keyboard_shortcuts: Optional[int] = Field(default=None, ge=0)
    camera_enabled: Optional[bool] = None
    microphone_enabled: Optional[bool] = None
    screen_recording_enabled: Optional[bool] = None


class ViolationReport(BaseModel):
    type: ViolationType
    severity: Severity
    description: str = Field(min_length=1)
    question_number: Optional[int] = None
    additional_data: dict[str, Any] = {}


class ViolationResponse(BaseModel):
    message: str
    terminated: bool = False
    risk_score: int
    violation_count: int
    warning: Optional[str] = None


class QuizResult(BaseModel):
    session_id: int
    quiz_title: str
    status: str
    attempt_number: int
    submitted_at: Optional[datetime] = None
    time_spent: int
    risk_score: int
    violation_count: int
    review_status: str
    # only when the quiz shows results
    score: Optional[float] = None
    total_points: Optional[float] = None
    percentage: Optional[float] = None
    letter_grade: Optional[str] = None
    passed: Optional[bool] = None
    # only when the quiz also allows review
    answers: Optional[list[SessionAnswer]] = None
    questions: Optional[list[QuizQuestion]] = None


class Violation(BaseModel):
    type: str
    severity: str
    description: str
    question_number: Optional[int] = None
    additional_data: dict[str, Any] = {}
    timestamp: datetime


class QuizSessionRead(BaseModel):
    id: int
    quiz_id: int
    quiz_title: Optional[str] = None
    student_id: int
    student_name: Optional[str] = None
    classroom_id: int
    status: str
    attempt_number: int
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_spent: int
    time_remaining: int
    questions: list[SessionQuestion] = []
    answers: list[SessionAnswer] = []
    points_earned: float
    total_points: float
    percentage: float
    letter_grade: Optional[str] = None
    passed: bool
    proctoring_data: dict[str, Any] = {}
    violations: list[Violation] = []
    violation_count: int
    risk_score: int
    review_status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    final_decision: Optional[str] = None

    class Config:
        from_attributes = True


class ReviewPage(BaseModel):
    sessions: list[SessionSummary]
    pagination: Pagination


class ReviewRequest(BaseModel):
    decision: Decision
    notes: Optional[str] = None
    score_adjustment: Optional[float] = None


class ReviewOutcome(BaseModel):
    id: int
    student: Optional[str] = None
    decision: str
    final_score: float
    status: str


class ReviewResponse(BaseModel):
    message: str
    session: ReviewOutcome
