from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.common import Pagination

PostType = Literal["announcement", "material", "assignment", "general"]
Visibility = Literal["all", "teachers", "students"]
LevelName = Literal["beginner", "intermediate", "advanced"]


class PostCreate(BaseModel):
    type: PostType = "general"
    title: str | None = Field(default=None, max_length=200)
    content: str = Field(min_length=1)
    related_assignment_id: int | None = None
    allow_comments: bool = True
    visibility: Visibility = "all"
    target_levels: list[LevelName] = []


class PostUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    allow_comments: bool | None = None
    visibility: Visibility | None = None
    target_levels: list[LevelName] | None = None


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)
    parent_comment_id: int | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class CommentRead(BaseModel):
    id: int
    post_id: int
    author_id: int
    author_name: str | None = None
    parent_comment_id: int | None = None
    content: str
    is_edited: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PostRead(BaseModel):
    id: int
    classroom_id: int
    author_id: int
    author_name: str | None = None
    type: str
    title: str | None = None
    content: str
    related_assignment_id: int | None = None
    allow_comments: bool
    is_pinned: bool
    visibility: str
    target_levels: list[str]
    views: int
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


class PostDetail(PostRead):
    comments: list[CommentRead] = []


class PostPage(BaseModel):
    posts: list[PostRead]
    pagination: Pagination


class LikeResult(BaseModel):
    liked: bool
    like_count: int


class PinResult(BaseModel):
    is_pinned: bool
