from app.db.base_class import Base  # noqa: F401

# import models so SQLAlchemy registers them on Base.metadata
from app.models import (  # noqa: F401
    assignment,
    attendance,
    classroom,
    dpp,
    post,
    question,
    quiz,
    submission,
    user,
    video_class,
)
