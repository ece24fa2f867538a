import logging

from sqlalchemy.orm import Session

from app.models.classroom import Classroom
from app.models.post import Post

logger = logging.getLogger(__name__)


def post_announcement(db: Session, classroom_id: int, author_id: int, title: str, content: str) -> Post | None:
    """Best-effort: failures are logged and never reach the caller."""
    try:
        post = Post(
            classroom_id=classroom_id,
            author_id=author_id,
            type="announcement",
            title=title,
            content=content,
            visibility="all",
            target_levels=[],
        )
        db.add(post)
        classroom = db.query(Classroom).filter(Classroom.id == classroom_id).first()
        if classroom:
            classroom.total_posts = (classroom.total_posts or 0) + 1
        db.commit()
        return post
    except Exception:
        db.rollback()
        logger.exception("Failed to post announcement in classroom %s", classroom_id)
        return None
