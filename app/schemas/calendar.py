from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class CalendarEvent(BaseModel):
    id: str  # "<type>-<id>", unique across event kinds
    type: Literal["assignment", "dpp", "video_class"]
    title: str
    date: datetime
    end_date: datetime | None = None
    classroom_id: int
    classroom_name: str | None = None
    status: str | None = None
    source_id: int
