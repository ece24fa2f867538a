import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone

TEST_DB_FILE = "test_classroom_lms.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"
TEST_UPLOAD_DIR = tempfile.mkdtemp(prefix="classroom_lms_uploads_")

# settings are read once at import time
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["UPLOAD_DIR"] = TEST_UPLOAD_DIR

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.security import hash_password  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.assignment import Assignment, AssignmentQuestion  # noqa: E402
from app.models.classroom import Classroom, ClassroomMember  # noqa: E402
from app.models.user import Role, User  # noqa: E402
from app.models.video_class import VideoClass  # noqa: E402

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "password123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)
    shutil.rmtree(TEST_UPLOAD_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def seed_data():
    """
    Seed a clean dataset for each test and hand back the ids.

    One classroom owned by teacher1 with student1 (beginner) and
    student2 (advanced) enrolled; student3 and teacher2 are outsiders.
    """
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()

        now = datetime.now(timezone.utc)
        hashed = hash_password(PASSWORD)

        teacher = User(name="Teacher One", email="teacher1@example.com", role=Role.TEACHER,
                       teacher_code="TEA00001", hashed_password=hashed)
        teacher2 = User(name="Teacher Two", email="teacher2@example.com", role=Role.TEACHER,
                        teacher_code="TEA00002", hashed_password=hashed)
        student1 = User(name="Student One", email="student1@example.com", role=Role.STUDENT,
                        student_code="STU00001", hashed_password=hashed)
        student2 = User(name="Student Two", email="student2@example.com", role=Role.STUDENT,
                        student_code="STU00002", hashed_password=hashed)
        student3 = User(name="Student Three", email="student3@example.com", role=Role.STUDENT,
                        student_code="STU00003", hashed_password=hashed)
        db.add_all([teacher, teacher2, student1, student2, student3])
        db.commit()

        classroom = Classroom(
            name="Physics 101",
            subject="Physics",
            class_code="PHY101",
            teacher_id=teacher.id,
        )
        db.add(classroom)
        db.commit()

        db.add_all(
            [
                ClassroomMember(classroom_id=classroom.id, student_id=student1.id, level="beginner"),
                ClassroomMember(classroom_id=classroom.id, student_id=student2.id, level="advanced"),
            ]
        )

        essay = Assignment(
            classroom_id=classroom.id,
            teacher_id=teacher.id,
            title="Essay on motion",
            description="Describe Newton's laws",
            type="assignment",
            total_points=100,
            due_date=now + timedelta(days=1),
            published_at=now,
        )
        mcq = Assignment(
            classroom_id=classroom.id,
            teacher_id=teacher.id,
            title="Kinematics MCQ",
            description="Two questions",
            type="mcq",
            total_points=50,
            due_date=now + timedelta(days=1),
            published_at=now,
        )
        mcq.questions = [
            AssignmentQuestion(position=0, question="Unit of force?", options=["Newton", "Joule"],
                               correct_answer="Newton", points=20),
            AssignmentQuestion(position=1, question="Unit of energy?", options=["Newton", "Joule"],
                               correct_answer="Joule", points=30),
        ]
        past_due = Assignment(
            classroom_id=classroom.id,
            teacher_id=teacher.id,
            title="Old homework",
            description="Already closed",
            type="assignment",
            total_points=50,
            due_date=now - timedelta(days=1),
            allow_late_submission=False,
            published_at=now - timedelta(days=3),
        )
        db.add_all([essay, mcq, past_due])

        upcoming_class = VideoClass(
            classroom_id=classroom.id,
            teacher_id=teacher.id,
            title="Lecture 1",
            scheduled_start_time=now + timedelta(minutes=10),
            scheduled_end_time=now + timedelta(minutes=70),
            total_students_invited=2,
        )
        db.add(upcoming_class)
        classroom.total_assignments = 3
        db.commit()

        yield {
            "teacher_id": teacher.id,
            "teacher2_id": teacher2.id,
            "student1_id": student1.id,
            "student2_id": student2.id,
            "student3_id": student3.id,
            "classroom_id": classroom.id,
            "essay_id": essay.id,
            "mcq_id": mcq.id,
            "mcq_question_ids": [q.id for q in mcq.questions],
            "past_due_id": past_due.id,
            "video_class_id": upcoming_class.id,
        }
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def teacher_token(client):
    return login(client, "teacher1@example.com")


@pytest.fixture()
def student_token(client):
    return login(client, "student1@example.com")
