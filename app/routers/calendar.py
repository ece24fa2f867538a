from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import ValidationFailed
from app.core.timeutils import as_utc, utcnow
from app.db.session import get_db
from app.models.user import User
from app.schemas.calendar import CalendarEvent
from app.services.calendar import collect_events
from app.services.classrooms import classroom_ids_for, ensure_access, ensure_classroom_exists

router = APIRouter()


def _scope(db: Session, me: User, classroom_id: Optional[int]) -> list[int]:
    if classroom_id is None:
        return classroom_ids_for(db, me, active_only=False)
    classroom = ensure_classroom_exists(db, classroom_id)
    ensure_access(db, classroom, me)
    return [classroom.id]


@router.get("/events", response_model=list[CalendarEvent])
def calendar_events(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    classroom_id: Optional[int] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    now = utcnow()
    start = as_utc(start_date) if start_date else now
    end = as_utc(end_date) if end_date else now + timedelta(days=30)
    if end < start:
        raise ValidationFailed("end_date must not be before start_date")
    return collect_events(db, me, _scope(db, me, classroom_id), start, end)


@router.get("/upcoming", response_model=list[CalendarEvent])
def upcoming_events(
    days: int = Query(default=7, ge=1, le=365),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    now = utcnow()
    events = collect_events(db, me, _scope(db, me, None), now, now + timedelta(days=days))
    return events[:limit]


@router.get("/date/{day}", response_model=list[CalendarEvent])
def events_on(
    day: date,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time.max, tzinfo=timezone.utc)
    return collect_events(db, me, _scope(db, me, None), start, end)
