from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./classroom_lms.db"

    # JWT
    # DEV ONLY default: override SECRET_KEY through the environment in production.
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # File storage
    STORAGE_BACKEND: str = "local"
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024

    # Video provider
    VIDEO_PROVIDER: str = "jitsi"
    VIDEO_SERVER_URL: str = "https://meet.jit.si"
    FRONTEND_URL: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

ACCESS_TOKEN_EXPIRE = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

# Attendance policy
LATE_JOIN_THRESHOLD_MINUTES = 5  # joins later than this are flagged late
FORCED_LATE_THRESHOLD_MINUTES = 15  # beyond this the status becomes "late"
EARLY_LEAVE_THRESHOLD_MINUTES = 5
EARLY_START_WINDOW_MINUTES = 15  # teachers may start a class this early
LATE_JOIN_CUTOFF_MINUTES = 10  # used when a class disallows late join
ATTENDANCE_GOAL_PERCENT = 75

# Letter grade thresholds, highest first
LETTER_GRADE_THRESHOLDS = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)

# Quiz proctoring
VIOLATION_SEVERITY_RISK = {"low": 5, "medium": 15, "high": 30, "critical": 50}
RISK_FLAG_THRESHOLD = 70  # submitted sessions at or above this need manual review
RISK_WARNING_THRESHOLD = 50
RISK_TERMINATE_THRESHOLD = 90
CRITICAL_VIOLATIONS_TO_TERMINATE = 2
