"""Live session persistence models.

SQLAlchemy models for the session store:
- LiveSessionModel: scheduled session with meeting credentials and cached recording
- CourseEnrollmentModel: read-side view of who is enrolled in a course
- SessionAttendanceModel: one row per (session, user), created on enrollment or join
- RollCallModel / RollCallResponseModel: in-session roll calls
- SessionMessageModel, SessionQuestionModel: chat and Q&A
- SessionPollModel / PollResponseModel: polls with JSON options/responses
- VideoProviderSettingModel: per mentor/provider OAuth credentials

No foreign key constraints between live-session tables (application-level
referential integrity via the repository, which deletes dependents with the
session).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import Base


class LiveSessionModel(Base):
    """Scheduled live video session tied to a course (and optionally a lesson)."""

    __tablename__ = "live_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    lesson_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mentor_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", server_default=text("'UTC'"))
    duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False)

    provider: Mapped[str] = mapped_column(
        String(50), default="google_meet", server_default=text("'google_meet'")
    )
    meeting_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    meeting_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    meeting_password: Mapped[str | None] = mapped_column(String(100), nullable=True)
    host_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    host_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    provider_event_id: Mapped[str | None] = mapped_column(String(300), nullable=True)

    recording_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    recording_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    recording_password: Mapped[str | None] = mapped_column(String(100), nullable=True)
    recording_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recording_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), default="scheduled", server_default=text("'scheduled'")
    )
    auto_record: Mapped[bool] = mapped_column(Boolean, default=True)
    waiting_room_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    max_attendees: Mapped[int | None] = mapped_column(Integer, default=100, nullable=True)
    chat_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    qna_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    polls_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    agenda: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class CourseEnrollmentModel(Base):
    """Student enrollment in a course. Written by the course service."""

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "user_id", name="uq_enrollment_course_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class SessionAttendanceModel(Base):
    """Attendance of one user at one session."""

    __tablename__ = "live_session_attendance"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_attendance_session_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="registered", server_default=text("'registered'")
    )
    join_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    left_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_to_roll_call: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class RollCallModel(Base):
    __tablename__ = "live_session_roll_calls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    initiated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", server_default=text("'active'"))


class RollCallResponseModel(Base):
    __tablename__ = "live_session_roll_call_responses"
    __table_args__ = (
        UniqueConstraint("roll_call_id", "user_id", name="uq_roll_call_response_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    roll_call_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    response_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_method: Mapped[str] = mapped_column(String(20), default="app")


class SessionMessageModel(Base):
    __tablename__ = "live_session_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), default="text")
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    reply_to_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class SessionQuestionModel(Base):
    __tablename__ = "live_session_qa"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String(100), nullable=False)
    mentor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    upvotes: Mapped[int] = mapped_column(Integer, default=0)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    asked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SessionPollModel(Base):
    """Poll with options stored as a JSON array of strings."""

    __tablename__ = "live_session_polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options_data: Mapped[list] = mapped_column(JSON, default=list)
    poll_type: Mapped[str] = mapped_column(String(20), default="single_choice")
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PollResponseModel(Base):
    __tablename__ = "live_session_poll_responses"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_response_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    response_data: Mapped[list] = mapped_column(JSON, default=list)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class VideoProviderSettingModel(Base):
    """OAuth credentials and preferences for one user's video provider account."""

    __tablename__ = "video_provider_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_provider_setting_user_provider"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    settings_data: Mapped[dict] = mapped_column(JSON, default=dict)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
