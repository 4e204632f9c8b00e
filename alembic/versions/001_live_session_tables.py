"""Live session tables: sessions, enrollments, attendance, roll calls, chat, Q&A, polls, provider settings.

Revision ID: 001_live_session_tables
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_live_session_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "live_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("lesson_id", sa.Integer(), nullable=True),
        sa.Column("mentor_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("timezone", sa.String(64), server_default=sa.text("'UTC'")),
        sa.Column("duration", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("provider", sa.String(50), server_default=sa.text("'google_meet'")),
        sa.Column("meeting_url", sa.String(1000), nullable=True),
        sa.Column("meeting_id", sa.String(200), nullable=True),
        sa.Column("meeting_password", sa.String(100), nullable=True),
        sa.Column("host_key", sa.String(100), nullable=True),
        sa.Column("host_url", sa.String(2000), nullable=True),
        sa.Column("provider_event_id", sa.String(300), nullable=True),
        sa.Column("recording_url", sa.String(2000), nullable=True),
        sa.Column("recording_id", sa.String(300), nullable=True),
        sa.Column("recording_password", sa.String(100), nullable=True),
        sa.Column("recording_size", sa.Integer(), nullable=True),
        sa.Column("recording_duration", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(50), server_default=sa.text("'scheduled'")),
        sa.Column("auto_record", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("waiting_room_enabled", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("max_attendees", sa.Integer(), nullable=True),
        sa.Column("chat_enabled", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("qna_enabled", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("polls_enabled", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("agenda", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_live_sessions_course_id", "live_sessions", ["course_id"])
    op.create_index("ix_live_sessions_mentor_id", "live_sessions", ["mentor_id"])

    op.create_table(
        "course_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("course_id", "user_id", name="uq_enrollment_course_user"),
    )
    op.create_index("ix_course_enrollments_course_id", "course_enrollments", ["course_id"])
    op.create_index("ix_course_enrollments_user_id", "course_enrollments", ["user_id"])

    op.create_table(
        "live_session_attendance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'registered'")),
        sa.Column("join_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("left_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_to_roll_call", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("session_id", "user_id", name="uq_attendance_session_user"),
    )
    op.create_index("ix_live_session_attendance_session_id", "live_session_attendance", ["session_id"])

    op.create_table(
        "live_session_roll_calls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("initiated_by", sa.String(100), nullable=False),
        sa.Column("initiated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'")),
    )
    op.create_index("ix_live_session_roll_calls_session_id", "live_session_roll_calls", ["session_id"])

    op.create_table(
        "live_session_roll_call_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("roll_call_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("response_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("response_method", sa.String(20), server_default=sa.text("'app'")),
        sa.UniqueConstraint("roll_call_id", "user_id", name="uq_roll_call_response_user"),
    )
    op.create_index(
        "ix_live_session_roll_call_responses_roll_call_id",
        "live_session_roll_call_responses",
        ["roll_call_id"],
    )

    op.create_table(
        "live_session_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(20), server_default=sa.text("'text'")),
        sa.Column("is_private", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("reply_to_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_live_session_messages_session_id", "live_session_messages", ["session_id"])

    op.create_table(
        "live_session_qa",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.String(100), nullable=False),
        sa.Column("mentor_id", sa.String(100), nullable=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'")),
        sa.Column("upvotes", sa.Integer(), server_default=sa.text("0")),
        sa.Column("is_anonymous", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("asked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_live_session_qa_session_id", "live_session_qa", ["session_id"])

    op.create_table(
        "live_session_polls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options_data", sa.JSON(), nullable=True),
        sa.Column("poll_type", sa.String(20), server_default=sa.text("'single_choice'")),
        sa.Column("is_anonymous", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_live_session_polls_session_id", "live_session_polls", ["session_id"])

    op.create_table(
        "live_session_poll_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("response_data", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("poll_id", "user_id", name="uq_poll_response_user"),
    )
    op.create_index("ix_live_session_poll_responses_poll_id", "live_session_poll_responses", ["poll_id"])

    op.create_table(
        "video_provider_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("settings_data", sa.JSON(), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "provider", name="uq_provider_setting_user_provider"),
    )
    op.create_index("ix_video_provider_settings_user_id", "video_provider_settings", ["user_id"])


def downgrade() -> None:
    op.drop_table("video_provider_settings")
    op.drop_table("live_session_poll_responses")
    op.drop_table("live_session_polls")
    op.drop_table("live_session_qa")
    op.drop_table("live_session_messages")
    op.drop_table("live_session_roll_call_responses")
    op.drop_table("live_session_roll_calls")
    op.drop_table("live_session_attendance")
    op.drop_table("course_enrollments")
    op.drop_table("live_sessions")
