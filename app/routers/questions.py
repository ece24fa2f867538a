from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import NotFound
from app.db.session import get_db
from app.models.question import Question
from app.models.user import User
from app.schemas.common import paginate
from app.schemas.question import CategoryCounts, QuestionCount, QuestionDetail, QuestionPage

router = APIRouter()

CATEGORY_KEYS = {
    "Quantitative Aptitude": "quantitative",
    "Logical Reasoning and Data Interpretation": "logical",
    "Verbal Ability and Reading Comprehension": "verbal",
}


def _filtered(db: Session, category: Optional[str], difficulty: Optional[str]):
    q = db.query(Question)
    if category:
        q = q.filter(Question.category == category)
    if difficulty:
        q = q.filter(Question.difficulty == difficulty)
    return q


@router.get("/count", response_model=QuestionCount)
def question_count(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return {"count": _filtered(db, category, difficulty).count()}


@router.get("/counts", response_model=CategoryCounts)
def question_counts(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    counts = {key: {"easy": 0, "medium": 0, "hard": 0, "total": 0} for key in CATEGORY_KEYS.values()}
    rows = (
        db.query(Question.category, Question.difficulty, func.count(Question.id))
        .group_by(Question.category, Question.difficulty)
        .all()
    )
    for category, difficulty, count in rows:
        key = CATEGORY_KEYS.get(category)
        if key is None:
            continue
        counts[key]["total"] += count
        if difficulty in counts[key]:
            counts[key][difficulty] = count
    return counts


@router.get("/", response_model=QuestionPage)
def list_questions(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    q = _filtered(db, category, difficulty)
    if search:
        pattern = f"%{search}%"
        # tags is JSON; match against its serialized form
        q = q.filter(or_(Question.question.ilike(pattern), cast(Question.tags, String).ilike(pattern)))

    total = q.count()
    questions = (
        q.order_by(Question.created_at.desc(), Question.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"questions": questions, "pagination": paginate(page, limit, total, len(questions))}


@router.get("/{question_id}", response_model=QuestionDetail)
def get_question(
    question_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise NotFound("Question not found")
    return question
