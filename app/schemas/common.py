import math

from pydantic import BaseModel


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_records: int
    has_next: bool
    has_prev: bool


def paginate(page: int, limit: int, total: int, returned: int) -> Pagination:
    skip = (page - 1) * limit
    return Pagination(
        current_page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
        total_records=total,
        has_next=skip + returned < total,
        has_prev=page > 1,
    )


class Message(BaseModel):
    message: str
