import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.errors import AccessDenied, NotFound, RuleViolation
from app.core.timeutils import utcnow
from app.db.session import get_db
from app.models.classroom import Classroom
from app.models.post import Comment, Post, PostLike
from app.models.user import Role, User
from app.schemas.common import Message, paginate
from app.schemas.post import (
    CommentCreate,
    CommentRead,
    CommentUpdate,
    LikeResult,
    PinResult,
    PostCreate,
    PostDetail,
    PostPage,
    PostRead,
    PostUpdate,
)
from app.services.classrooms import classroom_ids_for, ensure_access, ensure_classroom_exists, get_member

logger = logging.getLogger(__name__)

router = APIRouter()


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _ensure_post_exists(db: Session, post_id: int) -> Post:
    post = db.query(Post).filter(Post.id == post_id, Post.is_deleted.is_(False)).first()
    if not post:
        raise NotFound("Post not found")
    return post


def _has_access(db: Session, classroom: Classroom, user: User) -> bool:
    if user.role == Role.TEACHER:
        return classroom.teacher_id == user.id
    return get_member(db, classroom.id, user.id) is not None


def _is_classroom_teacher(post: Post, user: User) -> bool:
    return user.role == Role.TEACHER and post.classroom.teacher_id == user.id


def _detail(post: Post) -> PostDetail:
    out = PostDetail.model_validate(post)
    live = sorted((c for c in post.comments if not c.is_deleted), key=lambda c: (c.created_at, c.id))
    out.comments = [CommentRead.model_validate(c) for c in live]
    return out


@router.get("", response_model=list[PostRead])
def list_all_mine(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    ids = classroom_ids_for(db, me)
    return (
        db.query(Post)
        .filter(Post.classroom_id.in_(ids), Post.is_deleted.is_(False))
        .order_by(Post.is_pinned.desc(), Post.created_at.desc())
        .all()
    )


@router.post(
    "/classroom/{classroom_id}",
    response_model=PostRead,
    status_code=status.HTTP_201_CREATED,
)
def create_post(
    classroom_id: int,
    payload: PostCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    if not _has_access(db, classroom, me):
        raise AccessDenied("Access denied to this classroom")
    if me.role == Role.STUDENT and not classroom.allow_student_posts:
        raise AccessDenied("Students are not allowed to post in this classroom")

    post = Post(
        classroom_id=classroom.id,
        author_id=me.id,
        type=payload.type,
        title=payload.title,
        content=payload.content,
        related_assignment_id=payload.related_assignment_id,
        allow_comments=payload.allow_comments,
        visibility=payload.visibility,
        target_levels=list(payload.target_levels),
    )
    db.add(post)
    classroom.total_posts = (classroom.total_posts or 0) + 1
    _commit(db)
    db.refresh(post)
    return post


@router.get("/classroom/{classroom_id}", response_model=PostPage)
def list_classroom_posts(
    classroom_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    classroom = ensure_classroom_exists(db, classroom_id)
    member = ensure_access(db, classroom, me)

    q = db.query(Post).filter(Post.classroom_id == classroom_id, Post.is_deleted.is_(False))
    if me.role == Role.STUDENT:
        q = q.filter(Post.visibility.in_(["all", "students"]))
    else:
        q = q.filter(Post.visibility.in_(["all", "teachers"]))

    posts = q.order_by(Post.is_pinned.desc(), Post.created_at.desc()).all()
    if member is not None:
        # target_levels lives in a JSON column; filter in Python
        posts = [p for p in posts if not p.target_levels or member.level in p.target_levels]

    total = len(posts)
    skip = (page - 1) * limit
    window = posts[skip: skip + limit]
    return {"posts": window, "pagination": paginate(page, limit, total, len(window))}


@router.get("/{post_id}", response_model=PostDetail)
def get_post(
    post_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = _ensure_post_exists(db, post_id)
    if not _has_access(db, post.classroom, me):
        raise AccessDenied("Access denied to this post")

    post.views = (post.views or 0) + 1
    _commit(db)
    db.refresh(post)
    return _detail(post)


@router.put("/{post_id}", response_model=PostRead)
def update_post(
    post_id: int,
    payload: PostUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = (
        db.query(Post)
        .filter(Post.id == post_id, Post.author_id == me.id, Post.is_deleted.is_(False))
        .first()
    )
    if not post:
        raise NotFound("Post not found or access denied")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(post, field, value)
    _commit(db)
    db.refresh(post)
    return post


@router.delete("/{post_id}", response_model=Message)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = _ensure_post_exists(db, post_id)
    if post.author_id != me.id and not _is_classroom_teacher(post, me):
        raise AccessDenied("Access denied to delete this post")

    post.is_deleted = True
    post.deleted_at = utcnow()
    classroom = post.classroom
    classroom.total_posts = max(0, (classroom.total_posts or 0) - 1)
    _commit(db)
    return {"message": "Post deleted successfully"}


@router.put("/{post_id}/pin", response_model=PinResult)
def toggle_pin(
    post_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = _ensure_post_exists(db, post_id)
    if post.classroom.teacher_id != me.id:
        raise AccessDenied("Only teachers can pin posts")

    post.is_pinned = not post.is_pinned
    _commit(db)
    return {"is_pinned": post.is_pinned}


@router.post("/{post_id}/like", response_model=LikeResult)
def toggle_like(
    post_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = _ensure_post_exists(db, post_id)
    if not _has_access(db, post.classroom, me):
        raise AccessDenied("Access denied to this post")

    existing = (
        db.query(PostLike)
        .filter(PostLike.post_id == post.id, PostLike.user_id == me.id)
        .first()
    )
    if existing:
        db.delete(existing)
        liked = False
    else:
        db.add(PostLike(post_id=post.id, user_id=me.id))
        liked = True

    try:
        db.commit()
    except IntegrityError:
        # double click; the like already exists
        db.rollback()
        liked = True

    count = db.query(PostLike).filter(PostLike.post_id == post.id).count()
    return {"liked": liked, "like_count": count}


@router.post(
    "/{post_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    post_id: int,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    post = _ensure_post_exists(db, post_id)
    if not post.allow_comments:
        raise RuleViolation("Comments are disabled for this post")
    if not _has_access(db, post.classroom, me):
        raise AccessDenied("Access denied to comment on this post")
    if me.role == Role.STUDENT and not post.classroom.allow_student_comments:
        raise AccessDenied("Students are not allowed to comment in this classroom")

    if payload.parent_comment_id is not None:
        parent = (
            db.query(Comment)
            .filter(Comment.id == payload.parent_comment_id, Comment.post_id == post.id)
            .first()
        )
        if not parent:
            raise NotFound("Parent comment not found")

    comment = Comment(
        post_id=post.id,
        author_id=me.id,
        content=payload.content,
        parent_comment_id=payload.parent_comment_id,
    )
    db.add(comment)
    _commit(db)
    db.refresh(comment)
    return comment


@router.put("/comments/{comment_id}", response_model=CommentRead)
def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    comment = (
        db.query(Comment)
        .filter(Comment.id == comment_id, Comment.author_id == me.id, Comment.is_deleted.is_(False))
        .first()
    )
    if not comment:
        raise NotFound("Comment not found or access denied")

    comment.content = payload.content
    comment.is_edited = True
    _commit(db)
    db.refresh(comment)
    return comment


@router.delete("/comments/{comment_id}", response_model=Message)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    comment = (
        db.query(Comment)
        .filter(Comment.id == comment_id, Comment.is_deleted.is_(False))
        .first()
    )
    if not comment:
        raise NotFound("Comment not found")

    if comment.author_id != me.id and not _is_classroom_teacher(comment.post, me):
        raise AccessDenied("Access denied to delete this comment")

    comment.is_deleted = True
    comment.deleted_at = utcnow()
    _commit(db)
    return {"message": "Comment deleted successfully"}
