import logging

from fastapi import FastAPI

from app.core.errors import unhandled_exception_handler
from app.core.logging_middleware import RequestLoggingMiddleware
from app.db.init_db import init_db

from app.routers.assignments import router as assignments_router
from app.routers.attendance import router as attendance_router
from app.routers.auth import router as auth_router
from app.routers.calendar import router as calendar_router
from app.routers.classrooms import router as classrooms_router
from app.routers.dpp import router as dpp_router
from app.routers.posts import router as posts_router
from app.routers.questions import router as questions_router
from app.routers.quizzes import router as quizzes_router
from app.routers.users import router as users_router
from app.routers.video_classes import router as video_classes_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Classroom LMS")

# Middleware
app.add_middleware(RequestLoggingMiddleware)

# Anything not raised as an HTTPException becomes a logged, generic 500
app.add_exception_handler(Exception, unhandled_exception_handler)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(classrooms_router, prefix="/api/classrooms", tags=["classrooms"])
app.include_router(assignments_router, prefix="/api/assignments", tags=["assignments"])
app.include_router(posts_router, prefix="/api/posts", tags=["posts"])
app.include_router(video_classes_router, prefix="/api/video-classes", tags=["video-classes"])
app.include_router(attendance_router, prefix="/api/attendance", tags=["attendance"])
app.include_router(dpp_router, prefix="/api/dpp", tags=["dpp"])
app.include_router(calendar_router, prefix="/api/calendar", tags=["calendar"])
app.include_router(questions_router, prefix="/api/questions", tags=["questions"])
app.include_router(quizzes_router, prefix="/api/quizzes", tags=["quizzes"])
