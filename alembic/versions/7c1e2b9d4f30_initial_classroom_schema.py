"""initial classroom schema

Revision ID: 7c1e2b9d4f30
Revises:
Create Date: 2026-10-18 09:30:12.114203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e2b9d4f30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if with_updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True))
    return cols


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("teacher", "student", name="role", native_enum=False), nullable=False),
        sa.Column("student_code", sa.String(50), nullable=True, unique=True),
        sa.Column("teacher_code", sa.String(50), nullable=True, unique=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "classrooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("class_code", sa.String(6), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("allow_student_posts", sa.Boolean(), nullable=False),
        sa.Column("allow_student_comments", sa.Boolean(), nullable=False),
        sa.Column("total_assignments", sa.Integer(), nullable=False),
        sa.Column("total_posts", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_classrooms_id", "classrooms", ["id"])
    op.create_index("ix_classrooms_class_code", "classrooms", ["class_code"], unique=True)
    op.create_index("ix_classrooms_teacher_id", "classrooms", ["teacher_id"])

    op.create_table(
        "classroom_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("level", sa.String(20), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("classroom_id", "student_id", name="uq_classroom_member"),
    )
    op.create_index("ix_classroom_members_id", "classroom_members", ["id"])
    op.create_index("ix_classroom_members_classroom_id", "classroom_members", ["classroom_id"])
    op.create_index("ix_classroom_members_student_id", "classroom_members", ["student_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("total_points", sa.Float(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("allow_late_submission", sa.Boolean(), nullable=False),
        sa.Column("time_limit", sa.Integer(), nullable=True),
        sa.Column("target_levels", sa.JSON(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_assignments_id", "assignments", ["id"])
    op.create_index("ix_assignments_classroom_id", "assignments", ["classroom_id"])
    op.create_index("ix_assignments_teacher_id", "assignments", ["teacher_id"])

    op.create_table(
        "assignment_questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.String(500), nullable=True),
        sa.Column("points", sa.Float(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
    )
    op.create_index("ix_assignment_questions_id", "assignment_questions", ["id"])
    op.create_index("ix_assignment_questions_assignment_id", "assignment_questions", ["assignment_id"])

    op.create_table(
        "assignment_attachments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_type", sa.String(100), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_assignment_attachments_id", "assignment_attachments", ["id"])
    op.create_index("ix_assignment_attachments_assignment_id", "assignment_attachments", ["assignment_id"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_late_submission", sa.Boolean(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=True),
        sa.Column("points", sa.Float(), nullable=True),
        sa.Column("percentage", sa.Float(), nullable=True),
        sa.Column("letter_grade", sa.String(2), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("rubric_scores", sa.JSON(), nullable=False),
        sa.Column("graded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )
    op.create_index("ix_submissions_id", "submissions", ["id"])
    op.create_index("ix_submissions_assignment_id", "submissions", ["assignment_id"])
    op.create_index("ix_submissions_student_id", "submissions", ["student_id"])

    op.create_table(
        "video_classes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("scheduled_start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("class_type", sa.String(20), nullable=False),
        sa.Column("meeting_id", sa.String(100), nullable=True),
        sa.Column("meeting_password", sa.String(20), nullable=True),
        sa.Column("meeting_url", sa.String(500), nullable=True),
        sa.Column("is_recorded", sa.Boolean(), nullable=False),
        sa.Column("recording_url", sa.String(500), nullable=True),
        sa.Column("allow_late_join", sa.Boolean(), nullable=False),
        sa.Column("max_duration", sa.Integer(), nullable=False),
        sa.Column("total_students_invited", sa.Integer(), nullable=False),
        sa.Column("total_students_attended", sa.Integer(), nullable=False),
        sa.Column("attendance_percentage", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_video_classes_id", "video_classes", ["id"])
    op.create_index("ix_video_classes_classroom_id", "video_classes", ["classroom_id"])
    op.create_index("ix_video_classes_teacher_id", "video_classes", ["teacher_id"])
    op.create_index("ix_video_classes_scheduled_start_time", "video_classes", ["scheduled_start_time"])

    op.create_table(
        "video_class_participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("video_class_id", sa.Integer(), sa.ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.UniqueConstraint("video_class_id", "student_id", name="uq_video_class_participant"),
    )
    op.create_index("ix_video_class_participants_id", "video_class_participants", ["id"])
    op.create_index("ix_video_class_participants_video_class_id", "video_class_participants", ["video_class_id"])
    op.create_index("ix_video_class_participants_student_id", "video_class_participants", ["student_id"])

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_class_id", sa.Integer(), sa.ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("class_start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("class_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attendance_percentage", sa.Integer(), nullable=False),
        sa.Column("is_late_join", sa.Boolean(), nullable=False),
        sa.Column("late_by_minutes", sa.Integer(), nullable=False),
        sa.Column("is_early_leave", sa.Boolean(), nullable=False),
        sa.Column("early_leave_minutes", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "video_class_id", name="uq_attendance_student_class"),
    )
    op.create_index("ix_attendance_id", "attendance", ["id"])
    op.create_index("ix_attendance_student_id", "attendance", ["student_id"])
    op.create_index("ix_attendance_classroom_id", "attendance", ["classroom_id"])
    op.create_index("ix_attendance_video_class_id", "attendance", ["video_class_id"])

    op.create_table(
        "dpps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_class_id", sa.Integer(), sa.ForeignKey("video_classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("allowed_file_types", sa.JSON(), nullable=False),
        sa.Column("max_file_size", sa.Integer(), nullable=False),
        sa.Column("max_files", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("estimated_time", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_dpps_id", "dpps", ["id"])
    op.create_index("ix_dpps_classroom_id", "dpps", ["classroom_id"])
    op.create_index("ix_dpps_video_class_id", "dpps", ["video_class_id"])
    op.create_index("ix_dpps_teacher_id", "dpps", ["teacher_id"])
    op.create_index("ix_dpps_due_date", "dpps", ["due_date"])

    op.create_table(
        "dpp_assignment_files",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dpp_id", sa.Integer(), sa.ForeignKey("dpps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_url", sa.String(500), nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points", sa.Float(), nullable=False),
    )
    op.create_index("ix_dpp_assignment_files_id", "dpp_assignment_files", ["id"])
    op.create_index("ix_dpp_assignment_files_dpp_id", "dpp_assignment_files", ["dpp_id"])

    op.create_table(
        "dpp_submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dpp_id", sa.Integer(), sa.ForeignKey("dpps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("file_submissions", sa.JSON(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("is_late", sa.Boolean(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("graded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("dpp_id", "student_id", name="uq_dpp_submission_student"),
    )
    op.create_index("ix_dpp_submissions_id", "dpp_submissions", ["id"])
    op.create_index("ix_dpp_submissions_dpp_id", "dpp_submissions", ["dpp_id"])
    op.create_index("ix_dpp_submissions_student_id", "dpp_submissions", ["student_id"])

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("classroom_id", sa.Integer(), sa.ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("related_assignment_id", sa.Integer(), sa.ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("allow_comments", sa.Boolean(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), nullable=False),
        sa.Column("visibility", sa.String(20), nullable=False),
        sa.Column("target_levels", sa.JSON(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_posts_id", "posts", ["id"])
    op.create_index("ix_posts_classroom_id", "posts", ["classroom_id"])
    op.create_index("ix_posts_author_id", "posts", ["author_id"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("liked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_like_user"),
    )
    op.create_index("ix_post_likes_id", "post_likes", ["id"])
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parent_comment_id", sa.Integer(), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True),
        sa.Column("content", sa.String(1000), nullable=False),
        sa.Column("is_edited", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("option_a", sa.Text(), nullable=False),
        sa.Column("option_b", sa.Text(), nullable=False),
        sa.Column("option_c", sa.Text(), nullable=False),
        sa.Column("option_d", sa.Text(), nullable=False),
        sa.Column("correct_answer", sa.String(1), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_questions_id", "questions", ["id"])
    op.create_index("ix_questions_category", "questions", ["category"])
    op.create_index("ix_questions_difficulty", "questions", ["difficulty"])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "questions",
        "comments",
        "post_likes",
        "posts",
        "dpp_submissions",
        "dpp_assignment_files",
        "dpps",
        "attendance",
        "video_class_participants",
        "video_classes",
        "submissions",
        "assignment_attachments",
        "assignment_questions",
        "assignments",
        "classroom_members",
        "classrooms",
        "users",
    ):
        op.drop_table(table)
