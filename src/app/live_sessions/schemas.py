"""Pydantic v2 schemas for the live session domain.

Defines the provider-independent contracts used by the conferencing adapter
(SessionDescription, MeetingCredentials, RecordingInfo, ProviderSettings),
the calendar views (CalendarEvent, CalendarUrls), and the records owned by
the session store (sessions, attendance, roll calls, chat, Q&A, polls,
provider settings, analytics).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


# ── Enums ────────────────────────────────────────────────────────────────────


class VideoProvider(str, Enum):
    """Supported video conferencing backends. Closed set."""

    GOOGLE_MEET = "google_meet"
    ZOOM = "zoom"
    ZOHO = "zoho"


class CalendarProvider(str, Enum):
    """External calendars a session can be exported to."""

    GOOGLE = "google"
    OUTLOOK = "outlook"
    APPLE = "apple"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    REGISTERED = "registered"
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"


class RollCallStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ResponseMethod(str, Enum):
    APP = "app"
    MOBILE = "mobile"
    VOICE = "voice"


class MessageType(str, Enum):
    TEXT = "text"
    QUESTION = "question"
    POLL = "poll"
    REACTION = "reaction"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"
    DISMISSED = "dismissed"


class PollType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"


# ── Time Helpers ─────────────────────────────────────────────────────────────


def resolve_timezone(name: str | None) -> timezone | ZoneInfo:
    """Return tzinfo for an IANA name; UTC needs no tz database."""
    if not name or name.upper() in ("UTC", "Z", "GMT"):
        return timezone.utc
    return ZoneInfo(name)


def parse_timestamp(value: Any) -> Any:
    """Parse ISO-8601 and datetime-local (YYYY-MM-DDTHH:MM) strings.

    Non-string values pass through for pydantic to validate.
    """
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Invalid timestamp format: {value!r}") from None
    return value


def localize(value: datetime | None, tz_name: str | None) -> datetime | None:
    """Attach the session timezone to naive datetimes; aware values are kept."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=resolve_timezone(tz_name))


def _check_timezone(value: str) -> str:
    try:
        resolve_timezone(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value}") from None
    return value


# ── Adapter Contracts ────────────────────────────────────────────────────────


class SessionDescription(BaseModel):
    """Provider-independent description of a live session to schedule."""

    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration: int = 60
    timezone: str = "UTC"
    provider: VideoProvider = VideoProvider.GOOGLE_MEET
    waiting_room_enabled: bool = True
    auto_record: bool = True

    @property
    def effective_end_time(self) -> datetime:
        return self.end_time or self.start_time + timedelta(minutes=self.duration)


class MeetingCredentials(BaseModel):
    """Everything needed to join or host a meeting.

    meeting_url and meeting_id are always present; the rest depend on the
    provider. provider_event_id holds the Google Calendar event id.
    """

    meeting_url: str = Field(min_length=1)
    meeting_id: str = Field(min_length=1)
    meeting_password: str | None = None
    host_key: str | None = None
    host_url: str | None = None
    provider_event_id: str | None = None


class RecordingInfo(BaseModel):
    """A provider-hosted recording of a finished session."""

    recording_url: str
    recording_id: str
    recording_password: str | None = None
    recording_size: int | None = Field(None, description="Bytes")
    recording_duration: int | None = Field(None, description="Seconds or minutes, as reported by the provider")


class ProviderSettings(BaseModel):
    """Opaque credential bag for one mentor/provider pair."""

    provider: VideoProvider
    access_token: str | None = None


class CalendarEvent(BaseModel):
    """Derived calendar export view of a session. Never persisted."""

    id: str
    title: str
    start_time: str
    end_time: str
    timezone: str
    meeting_url: str
    description: str
    provider: CalendarProvider


class CalendarUrls(BaseModel):
    google: str
    outlook: str
    apple: str


# ── Live Sessions ────────────────────────────────────────────────────────────


class LiveSession(BaseModel):
    """Persisted live session with its meeting credentials."""

    id: int
    course_id: int
    lesson_id: int | None = None
    mentor_id: str
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    timezone: str = "UTC"
    duration: int = 60
    provider: VideoProvider = VideoProvider.GOOGLE_MEET
    status: SessionStatus = SessionStatus.SCHEDULED

    meeting_url: str | None = None
    meeting_id: str | None = None
    meeting_password: str | None = None
    host_key: str | None = None
    host_url: str | None = None
    provider_event_id: str | None = None

    recording_url: str | None = None
    recording_id: str | None = None
    recording_password: str | None = None
    recording_size: int | None = None
    recording_duration: int | None = None

    auto_record: bool = True
    waiting_room_enabled: bool = True
    max_attendees: int | None = 100
    chat_enabled: bool = True
    qna_enabled: bool = True
    polls_enabled: bool = True
    agenda: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def effective_end_time(self) -> datetime:
        return self.end_time or self.start_time + timedelta(minutes=self.duration)

    def to_description(self) -> SessionDescription:
        return SessionDescription(
            title=self.title,
            description=self.description,
            start_time=self.start_time,
            end_time=self.end_time,
            duration=self.duration,
            timezone=self.timezone,
            provider=self.provider,
            waiting_room_enabled=self.waiting_room_enabled,
            auto_record=self.auto_record,
        )

    def credentials(self) -> MeetingCredentials | None:
        """Current meeting credentials, or None if the session has no meeting."""
        if not self.meeting_url or not self.meeting_id:
            return None
        return MeetingCredentials(
            meeting_url=self.meeting_url,
            meeting_id=self.meeting_id,
            meeting_password=self.meeting_password,
            host_key=self.host_key,
            host_url=self.host_url,
            provider_event_id=self.provider_event_id,
        )

    def recording(self) -> RecordingInfo | None:
        """Cached recording, or None if not fetched yet."""
        if not self.recording_url:
            return None
        return RecordingInfo(
            recording_url=self.recording_url,
            recording_id=self.recording_id or "",
            recording_password=self.recording_password,
            recording_size=self.recording_size,
            recording_duration=self.recording_duration,
        )


class LiveSessionCreate(BaseModel):
    """Request schema for scheduling a new live session.

    start_time/end_time accept ISO-8601 or datetime-local strings; naive
    values are read in the session's timezone.
    """

    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    course_id: int
    lesson_id: int | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration: int = Field(60, gt=0, le=24 * 60)
    timezone: str = "UTC"
    provider: VideoProvider = VideoProvider.GOOGLE_MEET
    waiting_room_enabled: bool = True
    auto_record: bool = True
    max_attendees: int | None = Field(100, gt=0)
    chat_enabled: bool = True
    qna_enabled: bool = True
    polls_enabled: bool = True
    agenda: str | None = None

    parse_times = field_validator("start_time", "end_time", mode="before")(parse_timestamp)
    check_tz = field_validator("timezone")(_check_timezone)

    @model_validator(mode="after")
    def localize_and_order(self) -> LiveSessionCreate:
        self.start_time = localize(self.start_time, self.timezone)
        self.end_time = localize(self.end_time, self.timezone)
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def to_description(self) -> SessionDescription:
        return SessionDescription(
            title=self.title,
            description=self.description,
            start_time=self.start_time,
            end_time=self.end_time,
            duration=self.duration,
            timezone=self.timezone,
            provider=self.provider,
            waiting_room_enabled=self.waiting_room_enabled,
            auto_record=self.auto_record,
        )


# Fields whose change must be pushed to the remote meeting.
MEETING_FIELDS = frozenset({"title", "description", "start_time", "end_time", "duration"})


class LiveSessionUpdate(BaseModel):
    """Partial update for a live session. Only set fields are applied."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    lesson_id: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = Field(None, gt=0, le=24 * 60)
    timezone: str | None = None
    status: SessionStatus | None = None
    waiting_room_enabled: bool | None = None
    auto_record: bool | None = None
    max_attendees: int | None = Field(None, gt=0)
    chat_enabled: bool | None = None
    qna_enabled: bool | None = None
    polls_enabled: bool | None = None
    agenda: str | None = None

    parse_times = field_validator("start_time", "end_time", mode="before")(parse_timestamp)

    @field_validator("timezone")
    @classmethod
    def check_tz(cls, value: str | None) -> str | None:
        return None if value is None else _check_timezone(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def touches_meeting(self) -> bool:
        """True if any field mirrored on the remote meeting is being changed."""
        return any(self.changes().get(f) is not None for f in MEETING_FIELDS)

    def localized(self, session_timezone: str) -> LiveSessionUpdate:
        """Return a copy with naive times read in the effective timezone."""
        tz_name = self.timezone or session_timezone
        updated = self.model_copy()
        if self.start_time is not None:
            updated.start_time = localize(self.start_time, tz_name)
        if self.end_time is not None:
            updated.end_time = localize(self.end_time, tz_name)
        return updated


# ── Attendance & Roll Calls ──────────────────────────────────────────────────


class Attendance(BaseModel):
    id: int
    session_id: int
    user_id: str
    status: AttendanceStatus = AttendanceStatus.REGISTERED
    join_time: datetime | None = None
    left_time: datetime | None = None
    responded_to_roll_call: bool = False
    created_at: datetime | None = None


class RollCallCreate(BaseModel):
    duration: int = Field(60, gt=0, le=3600, description="Seconds the roll call stays open")


class RollCall(BaseModel):
    id: int
    session_id: int
    initiated_by: str
    initiated_at: datetime
    expires_at: datetime
    status: RollCallStatus = RollCallStatus.ACTIVE

    def is_open(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.status == RollCallStatus.ACTIVE and now < self.expires_at


class RollCallRespondRequest(BaseModel):
    response_method: ResponseMethod = ResponseMethod.APP


class RollCallResponse(BaseModel):
    id: int
    roll_call_id: int
    user_id: str
    response_time: datetime
    response_method: ResponseMethod = ResponseMethod.APP


# ── Chat & Q&A ───────────────────────────────────────────────────────────────


class SessionMessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=5000)
    message_type: MessageType = MessageType.TEXT
    is_private: bool = False
    reply_to_id: int | None = None


class SessionMessage(BaseModel):
    id: int
    session_id: int
    user_id: str
    message: str
    message_type: MessageType = MessageType.TEXT
    is_private: bool = False
    reply_to_id: int | None = None
    created_at: datetime


class SessionQuestionCreate(BaseModel):
    question: str = Field(min_length=1, max_length=2000)
    is_anonymous: bool = False


class QuestionAnswer(BaseModel):
    answer: str = Field(min_length=1)


class SessionQuestion(BaseModel):
    id: int
    session_id: int
    student_id: str
    mentor_id: str | None = None
    question: str
    answer: str | None = None
    status: QuestionStatus = QuestionStatus.PENDING
    upvotes: int = 0
    is_anonymous: bool = False
    asked_at: datetime
    answered_at: datetime | None = None


# ── Polls ────────────────────────────────────────────────────────────────────


class SessionPollCreate(BaseModel):
    question: str = Field(min_length=1, max_length=1000)
    options: list[str] = Field(default_factory=list)
    poll_type: PollType = PollType.SINGLE_CHOICE
    is_anonymous: bool = True

    @model_validator(mode="after")
    def check_options(self) -> SessionPollCreate:
        if self.poll_type != PollType.TEXT:
            if len(self.options) < 2:
                raise ValueError("choice polls need at least two options")
            if len(set(self.options)) != len(self.options):
                raise ValueError("poll options must be unique")
        return self


class SessionPoll(BaseModel):
    id: int
    session_id: int
    created_by: str
    question: str
    options: list[str] = Field(default_factory=list)
    poll_type: PollType = PollType.SINGLE_CHOICE
    is_anonymous: bool = True
    is_active: bool = True
    created_at: datetime
    closed_at: datetime | None = None

    def validate_response(self, response: list[str]) -> None:
        """Raise ValueError if the response does not fit this poll."""
        if not response:
            raise ValueError("Empty poll response")
        if self.poll_type == PollType.TEXT:
            return
        if self.poll_type == PollType.SINGLE_CHOICE and len(response) != 1:
            raise ValueError("Single choice polls take exactly one option")
        unknown = [r for r in response if r not in self.options]
        if unknown:
            raise ValueError(f"Unknown poll option(s): {', '.join(unknown)}")


class PollResponseCreate(BaseModel):
    response: list[str]

    @field_validator("response", mode="before")
    @classmethod
    def wrap_single(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class PollResponse(BaseModel):
    id: int
    poll_id: int
    user_id: str
    response: list[str]
    submitted_at: datetime


class PollResults(BaseModel):
    poll_id: int
    question: str
    poll_type: PollType
    total_responses: int = 0
    counts: dict[str, int] = Field(default_factory=dict)
    text_responses: list[str] = Field(default_factory=list)


# ── Provider Settings ────────────────────────────────────────────────────────


class VideoProviderSettingCreate(BaseModel):
    provider: VideoProvider
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False

    def credential_updates(self) -> dict[str, Any]:
        """Token fields present in the request; omitted ones keep their stored value."""
        return {
            field: getattr(self, field)
            for field in ("access_token", "refresh_token", "token_expires_at")
            if field in self.model_fields_set
        }


class VideoProviderSetting(BaseModel):
    id: int
    user_id: str
    provider: VideoProvider
    is_default: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_provider_settings(self) -> ProviderSettings:
        return ProviderSettings(provider=self.provider, access_token=self.access_token)


# ── Analytics ────────────────────────────────────────────────────────────────


class SessionAnalytics(BaseModel):
    session_id: int
    registered: int = 0
    attended: int = 0
    attendance_rate: float = Field(0.0, description="attended / registered, 0-1")
    average_attendance_minutes: float | None = None
    roll_call_responses: int = 0
    messages: int = 0
    questions: int = 0
    answered_questions: int = 0
    polls: int = 0
    poll_responses: int = 0
