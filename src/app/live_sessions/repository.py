"""Live session repository -- async CRUD for the session store.

Provides LiveSessionRepository with the session_factory callable pattern:
every method opens its own AsyncSession from the injected factory, so the
repository holds no connection state. Handles conversion between SQLAlchemy
models and the Pydantic schemas in live_sessions.schemas.

The repository never talks to video providers. Routes call the conferencing
adapter first and hand the resulting MeetingCredentials in.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.live_sessions.models import (
    CourseEnrollmentModel,
    LiveSessionModel,
    PollResponseModel,
    RollCallModel,
    RollCallResponseModel,
    SessionAttendanceModel,
    SessionMessageModel,
    SessionPollModel,
    SessionQuestionModel,
    VideoProviderSettingModel,
)
from src.app.live_sessions.schemas import (
    Attendance,
    AttendanceStatus,
    LiveSession,
    LiveSessionCreate,
    MeetingCredentials,
    PollResponse,
    PollResults,
    PollType,
    QuestionStatus,
    RecordingInfo,
    ResponseMethod,
    RollCall,
    RollCallResponse,
    RollCallStatus,
    SessionAnalytics,
    SessionMessage,
    SessionMessageCreate,
    SessionPoll,
    SessionPollCreate,
    SessionQuestion,
    SessionQuestionCreate,
    VideoProvider,
    VideoProviderSetting,
    VideoProviderSettingCreate,
)

logger = structlog.get_logger(__name__)

ATTENDED_STATUSES = (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_session(model: LiveSessionModel) -> LiveSession:
    return LiveSession(
        id=model.id,
        course_id=model.course_id,
        lesson_id=model.lesson_id,
        mentor_id=model.mentor_id,
        title=model.title,
        description=model.description,
        start_time=model.start_time,
        end_time=model.end_time,
        timezone=model.timezone or "UTC",
        duration=model.duration,
        provider=VideoProvider(model.provider),
        status=model.status,
        meeting_url=model.meeting_url,
        meeting_id=model.meeting_id,
        meeting_password=model.meeting_password,
        host_key=model.host_key,
        host_url=model.host_url,
        provider_event_id=model.provider_event_id,
        recording_url=model.recording_url,
        recording_id=model.recording_id,
        recording_password=model.recording_password,
        recording_size=model.recording_size,
        recording_duration=model.recording_duration,
        auto_record=model.auto_record,
        waiting_room_enabled=model.waiting_room_enabled,
        max_attendees=model.max_attendees,
        chat_enabled=model.chat_enabled,
        qna_enabled=model.qna_enabled,
        polls_enabled=model.polls_enabled,
        agenda=model.agenda,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_attendance(model: SessionAttendanceModel) -> Attendance:
    return Attendance(
        id=model.id,
        session_id=model.session_id,
        user_id=model.user_id,
        status=AttendanceStatus(model.status),
        join_time=model.join_time,
        left_time=model.left_time,
        responded_to_roll_call=model.responded_to_roll_call,
        created_at=model.created_at,
    )


def _model_to_roll_call(model: RollCallModel) -> RollCall:
    return RollCall(
        id=model.id,
        session_id=model.session_id,
        initiated_by=model.initiated_by,
        initiated_at=model.initiated_at,
        expires_at=model.expires_at,
        status=RollCallStatus(model.status),
    )


def _model_to_message(model: SessionMessageModel) -> SessionMessage:
    return SessionMessage(
        id=model.id,
        session_id=model.session_id,
        user_id=model.user_id,
        message=model.message,
        message_type=model.message_type,
        is_private=model.is_private,
        reply_to_id=model.reply_to_id,
        created_at=model.created_at,
    )


def _model_to_question(model: SessionQuestionModel) -> SessionQuestion:
    return SessionQuestion(
        id=model.id,
        session_id=model.session_id,
        student_id=model.student_id,
        mentor_id=model.mentor_id,
        question=model.question,
        answer=model.answer,
        status=QuestionStatus(model.status),
        upvotes=model.upvotes or 0,
        is_anonymous=model.is_anonymous,
        asked_at=model.asked_at,
        answered_at=model.answered_at,
    )


def _model_to_poll(model: SessionPollModel) -> SessionPoll:
    return SessionPoll(
        id=model.id,
        session_id=model.session_id,
        created_by=model.created_by,
        question=model.question,
        options=list(model.options_data or []),
        poll_type=PollType(model.poll_type),
        is_anonymous=model.is_anonymous,
        is_active=model.is_active,
        created_at=model.created_at,
        closed_at=model.closed_at,
    )


def _model_to_poll_response(model: PollResponseModel) -> PollResponse:
    return PollResponse(
        id=model.id,
        poll_id=model.poll_id,
        user_id=model.user_id,
        response=list(model.response_data or []),
        submitted_at=model.submitted_at,
    )


def _model_to_provider_setting(model: VideoProviderSettingModel) -> VideoProviderSetting:
    return VideoProviderSetting(
        id=model.id,
        user_id=model.user_id,
        provider=VideoProvider(model.provider),
        is_default=model.is_default,
        settings=dict(model.settings_data or {}),
        access_token=model.access_token,
        refresh_token=model.refresh_token,
        token_expires_at=model.token_expires_at,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def tally_poll_responses(poll: SessionPoll, responses: list[list[str]]) -> PollResults:
    """Count responses per option; text polls keep the raw answers instead."""
    results = PollResults(
        poll_id=poll.id,
        question=poll.question,
        poll_type=poll.poll_type,
        total_responses=len(responses),
    )
    if poll.poll_type == PollType.TEXT:
        results.text_responses = [text for response in responses for text in response]
        return results
    counts = {option: 0 for option in poll.options}
    for response in responses:
        for option in response:
            if option in counts:
                counts[option] += 1
    results.counts = counts
    return results


# ── Repository ──────────────────────────────────────────────────────────────


class LiveSessionRepository:
    """Async CRUD operations for live sessions and everything hanging off them.

    Args:
        session_factory: Async callable that yields AsyncSession instances
            (Database.session).
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Sessions ─────────────────────────────────────────────────────────

    async def create_session(
        self,
        mentor_id: str,
        data: LiveSessionCreate,
        credentials: MeetingCredentials,
    ) -> LiveSession:
        """Persist a new session with the meeting credentials it was created with."""
        async for session in self._session_factory():
            model = LiveSessionModel(
                course_id=data.course_id,
                lesson_id=data.lesson_id,
                mentor_id=mentor_id,
                title=data.title,
                description=data.description,
                start_time=data.start_time,
                end_time=data.end_time,
                timezone=data.timezone,
                duration=data.duration,
                provider=data.provider.value,
                meeting_url=credentials.meeting_url,
                meeting_id=credentials.meeting_id,
                meeting_password=credentials.meeting_password,
                host_key=credentials.host_key,
                host_url=credentials.host_url,
                provider_event_id=credentials.provider_event_id,
                auto_record=data.auto_record,
                waiting_room_enabled=data.waiting_room_enabled,
                max_attendees=data.max_attendees,
                chat_enabled=data.chat_enabled,
                qna_enabled=data.qna_enabled,
                polls_enabled=data.polls_enabled,
                agenda=data.agenda,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "live_session.created",
                session_id=model.id,
                course_id=model.course_id,
                provider=model.provider,
            )
            return _model_to_session(model)

    async def get_session(self, session_id: int) -> LiveSession | None:
        async for session in self._session_factory():
            model = await session.get(LiveSessionModel, session_id)
            if model is None:
                return None
            return _model_to_session(model)

    async def update_session(
        self,
        session_id: int,
        changes: dict[str, Any],
        credentials: MeetingCredentials | None = None,
    ) -> LiveSession | None:
        """Apply field changes (and optionally new credentials) to a session.

        Returns:
            Updated LiveSession, or None if the session does not exist.
        """
        async for session in self._session_factory():
            model = await session.get(LiveSessionModel, session_id)
            if model is None:
                return None
            for field, value in changes.items():
                if hasattr(value, "value"):
                    value = value.value
                setattr(model, field, value)
            if credentials is not None:
                model.meeting_url = credentials.meeting_url
                model.meeting_id = credentials.meeting_id
                model.meeting_password = credentials.meeting_password
                model.host_key = credentials.host_key
                model.host_url = credentials.host_url
                model.provider_event_id = credentials.provider_event_id
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_session(model)

    async def save_recording(
        self, session_id: int, recording: RecordingInfo
    ) -> LiveSession | None:
        """Cache a fetched recording on the session row."""
        async for session in self._session_factory():
            model = await session.get(LiveSessionModel, session_id)
            if model is None:
                return None
            model.recording_url = recording.recording_url
            model.recording_id = recording.recording_id
            model.recording_password = recording.recording_password
            model.recording_size = recording.recording_size
            model.recording_duration = recording.recording_duration
            await session.commit()
            await session.refresh(model)
            return _model_to_session(model)

    async def delete_session(self, session_id: int) -> bool:
        """Delete a session and every row that belongs to it.

        Returns:
            True if the session existed.
        """
        async for session in self._session_factory():
            model = await session.get(LiveSessionModel, session_id)
            if model is None:
                return False

            roll_call_ids = select(RollCallModel.id).where(RollCallModel.session_id == session_id)
            poll_ids = select(SessionPollModel.id).where(SessionPollModel.session_id == session_id)
            await session.execute(
                delete(RollCallResponseModel).where(RollCallResponseModel.roll_call_id.in_(roll_call_ids))
            )
            await session.execute(
                delete(PollResponseModel).where(PollResponseModel.poll_id.in_(poll_ids))
            )
            for dependent in (
                RollCallModel,
                SessionPollModel,
                SessionAttendanceModel,
                SessionMessageModel,
                SessionQuestionModel,
            ):
                await session.execute(delete(dependent).where(dependent.session_id == session_id))
            await session.delete(model)
            await session.commit()
            logger.info("live_session.deleted", session_id=session_id)
            return True

    async def list_sessions_by_course(self, course_id: int) -> list[LiveSession]:
        async for session in self._session_factory():
            stmt = (
                select(LiveSessionModel)
                .where(LiveSessionModel.course_id == course_id)
                .order_by(LiveSessionModel.start_time)
            )
            result = await session.execute(stmt)
            return [_model_to_session(m) for m in result.scalars().all()]

    async def list_sessions_by_mentor(self, mentor_id: str) -> list[LiveSession]:
        async for session in self._session_factory():
            stmt = (
                select(LiveSessionModel)
                .where(LiveSessionModel.mentor_id == mentor_id)
                .order_by(LiveSessionModel.start_time)
            )
            result = await session.execute(stmt)
            return [_model_to_session(m) for m in result.scalars().all()]

    async def list_sessions_for_student(
        self,
        user_id: str,
        start_from: datetime | None = None,
        start_to: datetime | None = None,
    ) -> list[LiveSession]:
        """Sessions of every course the user is enrolled in, by start time.

        Args:
            user_id: Student id.
            start_from: Only sessions starting at or after this instant.
            start_to: Only sessions starting at or before this instant.
        """
        async for session in self._session_factory():
            stmt = (
                select(LiveSessionModel)
                .join(
                    CourseEnrollmentModel,
                    CourseEnrollmentModel.course_id == LiveSessionModel.course_id,
                )
                .where(CourseEnrollmentModel.user_id == user_id)
            )
            if start_from is not None:
                stmt = stmt.where(LiveSessionModel.start_time >= start_from)
            if start_to is not None:
                stmt = stmt.where(LiveSessionModel.start_time <= start_to)
            result = await session.execute(stmt.order_by(LiveSessionModel.start_time))
            return [_model_to_session(m) for m in result.scalars().all()]

    # ── Enrollment ───────────────────────────────────────────────────────

    async def enroll_students_in_session(self, session_id: int, course_id: int) -> int:
        """Create 'registered' attendance rows for every student of the course.

        Students that already have a row are skipped.

        Returns:
            Number of rows created.
        """
        async for session in self._session_factory():
            enrolled = await session.execute(
                select(CourseEnrollmentModel.user_id).where(
                    CourseEnrollmentModel.course_id == course_id
                )
            )
            existing = await session.execute(
                select(SessionAttendanceModel.user_id).where(
                    SessionAttendanceModel.session_id == session_id
                )
            )
            already = set(existing.scalars().all())
            new_ids = [uid for uid in enrolled.scalars().all() if uid not in already]
            session.add_all(
                SessionAttendanceModel(
                    session_id=session_id,
                    user_id=uid,
                    status=AttendanceStatus.REGISTERED.value,
                )
                for uid in new_ids
            )
            await session.commit()
            logger.info(
                "live_session.students_enrolled",
                session_id=session_id,
                course_id=course_id,
                count=len(new_ids),
            )
            return len(new_ids)

    async def is_user_enrolled_in_course(self, user_id: str, course_id: int) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                select(CourseEnrollmentModel.id).where(
                    CourseEnrollmentModel.user_id == user_id,
                    CourseEnrollmentModel.course_id == course_id,
                )
            )
            return result.first() is not None

    # ── Attendance ───────────────────────────────────────────────────────

    async def record_attendance(
        self,
        session_id: int,
        user_id: str,
        status: AttendanceStatus = AttendanceStatus.PRESENT,
        join_time: datetime | None = None,
    ) -> Attendance:
        """Upsert the attendance row for (session, user).

        The first join time is kept when a user rejoins; left_time is cleared.
        """
        join_time = join_time or datetime.now(timezone.utc)
        async for session in self._session_factory():
            result = await session.execute(
                select(SessionAttendanceModel).where(
                    SessionAttendanceModel.session_id == session_id,
                    SessionAttendanceModel.user_id == user_id,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                model = SessionAttendanceModel(
                    session_id=session_id,
                    user_id=user_id,
                    status=status.value,
                    join_time=join_time,
                )
                session.add(model)
            else:
                if model.join_time is None:
                    model.join_time = join_time
                    model.status = status.value
                model.left_time = None
            await session.commit()
            await session.refresh(model)
            return _model_to_attendance(model)

    async def mark_left(
        self, session_id: int, user_id: str, left_time: datetime | None = None
    ) -> Attendance | None:
        async for session in self._session_factory():
            result = await session.execute(
                select(SessionAttendanceModel).where(
                    SessionAttendanceModel.session_id == session_id,
                    SessionAttendanceModel.user_id == user_id,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                return None
            model.left_time = left_time or datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_attendance(model)

    async def get_attendance(self, session_id: int) -> list[Attendance]:
        async for session in self._session_factory():
            result = await session.execute(
                select(SessionAttendanceModel)
                .where(SessionAttendanceModel.session_id == session_id)
                .order_by(SessionAttendanceModel.id)
            )
            return [_model_to_attendance(m) for m in result.scalars().all()]

    # ── Roll Calls ───────────────────────────────────────────────────────

    async def create_roll_call(
        self, session_id: int, initiated_by: str, duration_seconds: int = 60
    ) -> RollCall:
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            model = RollCallModel(
                session_id=session_id,
                initiated_by=initiated_by,
                initiated_at=now,
                expires_at=now + timedelta(seconds=duration_seconds),
                status=RollCallStatus.ACTIVE.value,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "live_session.roll_call_started",
                session_id=session_id,
                roll_call_id=model.id,
                duration_seconds=duration_seconds,
            )
            return _model_to_roll_call(model)

    async def get_roll_call(self, roll_call_id: int) -> RollCall | None:
        async for session in self._session_factory():
            model = await session.get(RollCallModel, roll_call_id)
            if model is None:
                return None
            return _model_to_roll_call(model)

    async def respond_to_roll_call(
        self,
        roll_call_id: int,
        user_id: str,
        response_method: ResponseMethod = ResponseMethod.APP,
    ) -> RollCallResponse:
        """Record a roll-call response and flag the user's attendance row.

        Responding twice updates the existing response.

        Raises:
            ValueError: If the roll call does not exist.
        """
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            roll_call = await session.get(RollCallModel, roll_call_id)
            if roll_call is None:
                raise ValueError(f"Roll call not found: id={roll_call_id}")

            result = await session.execute(
                select(RollCallResponseModel).where(
                    RollCallResponseModel.roll_call_id == roll_call_id,
                    RollCallResponseModel.user_id == user_id,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                model = RollCallResponseModel(roll_call_id=roll_call_id, user_id=user_id)
                session.add(model)
            model.response_time = now
            model.response_method = response_method.value

            await session.execute(
                update(SessionAttendanceModel)
                .where(
                    SessionAttendanceModel.session_id == roll_call.session_id,
                    SessionAttendanceModel.user_id == user_id,
                )
                .values(responded_to_roll_call=True)
            )
            await session.commit()
            await session.refresh(model)
            return RollCallResponse(
                id=model.id,
                roll_call_id=model.roll_call_id,
                user_id=model.user_id,
                response_time=model.response_time,
                response_method=ResponseMethod(model.response_method),
            )

    # ── Chat ─────────────────────────────────────────────────────────────

    async def create_message(
        self, session_id: int, user_id: str, data: SessionMessageCreate
    ) -> SessionMessage:
        async for session in self._session_factory():
            model = SessionMessageModel(
                session_id=session_id,
                user_id=user_id,
                message=data.message,
                message_type=data.message_type.value,
                is_private=data.is_private,
                reply_to_id=data.reply_to_id,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_message(model)

    async def list_messages(
        self, session_id: int, page: int = 1, limit: int = 50
    ) -> list[SessionMessage]:
        """Messages in posting order, one page at a time (page is 1-based)."""
        async for session in self._session_factory():
            stmt = (
                select(SessionMessageModel)
                .where(SessionMessageModel.session_id == session_id)
                .order_by(SessionMessageModel.created_at, SessionMessageModel.id)
                .offset((max(page, 1) - 1) * limit)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_message(m) for m in result.scalars().all()]

    # ── Q&A ──────────────────────────────────────────────────────────────

    async def create_question(
        self, session_id: int, student_id: str, data: SessionQuestionCreate
    ) -> SessionQuestion:
        async for session in self._session_factory():
            model = SessionQuestionModel(
                session_id=session_id,
                student_id=student_id,
                question=data.question,
                is_anonymous=data.is_anonymous,
                status=QuestionStatus.PENDING.value,
                upvotes=0,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_question(model)

    async def answer_question(
        self, session_id: int, question_id: int, mentor_id: str, answer: str
    ) -> SessionQuestion | None:
        async for session in self._session_factory():
            model = await session.get(SessionQuestionModel, question_id)
            if model is None or model.session_id != session_id:
                return None
            model.answer = answer
            model.mentor_id = mentor_id
            model.status = QuestionStatus.ANSWERED.value
            model.answered_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_question(model)

    async def list_questions(
        self, session_id: int, status: QuestionStatus | None = None
    ) -> list[SessionQuestion]:
        async for session in self._session_factory():
            stmt = select(SessionQuestionModel).where(
                SessionQuestionModel.session_id == session_id
            )
            if status is not None:
                stmt = stmt.where(SessionQuestionModel.status == status.value)
            stmt = stmt.order_by(
                SessionQuestionModel.upvotes.desc(), SessionQuestionModel.asked_at
            )
            result = await session.execute(stmt)
            return [_model_to_question(m) for m in result.scalars().all()]

    # ── Polls ────────────────────────────────────────────────────────────

    async def create_poll(
        self, session_id: int, created_by: str, data: SessionPollCreate
    ) -> SessionPoll:
        async for session in self._session_factory():
            model = SessionPollModel(
                session_id=session_id,
                created_by=created_by,
                question=data.question,
                options_data=list(data.options),
                poll_type=data.poll_type.value,
                is_anonymous=data.is_anonymous,
                is_active=True,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_poll(model)

    async def get_poll(self, poll_id: int) -> SessionPoll | None:
        async for session in self._session_factory():
            model = await session.get(SessionPollModel, poll_id)
            if model is None:
                return None
            return _model_to_poll(model)

    async def close_poll(self, poll_id: int) -> SessionPoll | None:
        async for session in self._session_factory():
            model = await session.get(SessionPollModel, poll_id)
            if model is None:
                return None
            model.is_active = False
            model.closed_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_poll(model)

    async def respond_to_poll(
        self, poll_id: int, user_id: str, response: list[str]
    ) -> PollResponse:
        """Store a user's poll answer, replacing any earlier answer."""
        async for session in self._session_factory():
            result = await session.execute(
                select(PollResponseModel).where(
                    PollResponseModel.poll_id == poll_id,
                    PollResponseModel.user_id == user_id,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                model = PollResponseModel(poll_id=poll_id, user_id=user_id)
                session.add(model)
            model.response_data = list(response)
            model.submitted_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_poll_response(model)

    async def get_poll_results(self, poll_id: int) -> PollResults | None:
        async for session in self._session_factory():
            poll = await session.get(SessionPollModel, poll_id)
            if poll is None:
                return None
            result = await session.execute(
                select(PollResponseModel.response_data).where(
                    PollResponseModel.poll_id == poll_id
                )
            )
            responses = [list(r or []) for r in result.scalars().all()]
            return tally_poll_responses(_model_to_poll(poll), responses)

    # ── Video Provider Settings ──────────────────────────────────────────

    async def get_video_provider_settings(
        self, user_id: str, provider: VideoProvider
    ) -> VideoProviderSetting | None:
        async for session in self._session_factory():
            result = await session.execute(
                select(VideoProviderSettingModel).where(
                    VideoProviderSettingModel.user_id == user_id,
                    VideoProviderSettingModel.provider == provider.value,
                    VideoProviderSettingModel.is_active.is_(True),
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_provider_setting(model)

    async def list_video_provider_settings(self, user_id: str) -> list[VideoProviderSetting]:
        async for session in self._session_factory():
            result = await session.execute(
                select(VideoProviderSettingModel)
                .where(VideoProviderSettingModel.user_id == user_id)
                .order_by(VideoProviderSettingModel.provider)
            )
            return [_model_to_provider_setting(m) for m in result.scalars().all()]

    async def save_video_provider_settings(
        self, user_id: str, data: VideoProviderSettingCreate
    ) -> VideoProviderSetting:
        """Upsert the settings row for (user, provider).

        Marking a provider as default clears the flag on the user's other rows.
        Tokens and settings left out of the request keep their stored values.
        """
        async for session in self._session_factory():
            if data.is_default:
                await session.execute(
                    update(VideoProviderSettingModel)
                    .where(
                        VideoProviderSettingModel.user_id == user_id,
                        VideoProviderSettingModel.provider != data.provider.value,
                    )
                    .values(is_default=False)
                )
            result = await session.execute(
                select(VideoProviderSettingModel).where(
                    VideoProviderSettingModel.user_id == user_id,
                    VideoProviderSettingModel.provider == data.provider.value,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                model = VideoProviderSettingModel(user_id=user_id, provider=data.provider.value)
                session.add(model)
            model.is_default = data.is_default
            if "settings" in data.model_fields_set or model.settings_data is None:
                model.settings_data = dict(data.settings)
            for field, value in data.credential_updates().items():
                setattr(model, field, value)
            model.is_active = True
            await session.commit()
            await session.refresh(model)
            logger.info(
                "video_provider.settings_saved",
                user_id=user_id,
                provider=data.provider.value,
                is_default=data.is_default,
            )
            return _model_to_provider_setting(model)

    # ── Analytics ────────────────────────────────────────────────────────

    async def get_session_analytics(self, session_id: int) -> SessionAnalytics:
        async for session in self._session_factory():

            async def count(stmt) -> int:
                return int((await session.execute(stmt)).scalar_one() or 0)

            registered = await count(
                select(func.count(SessionAttendanceModel.id)).where(
                    SessionAttendanceModel.session_id == session_id
                )
            )
            attended = await count(
                select(func.count(SessionAttendanceModel.id)).where(
                    SessionAttendanceModel.session_id == session_id,
                    SessionAttendanceModel.status.in_(ATTENDED_STATUSES),
                )
            )
            roll_call_responses = await count(
                select(func.count(RollCallResponseModel.id))
                .join(RollCallModel, RollCallModel.id == RollCallResponseModel.roll_call_id)
                .where(RollCallModel.session_id == session_id)
            )
            messages = await count(
                select(func.count(SessionMessageModel.id)).where(
                    SessionMessageModel.session_id == session_id
                )
            )
            questions = await count(
                select(func.count(SessionQuestionModel.id)).where(
                    SessionQuestionModel.session_id == session_id
                )
            )
            answered = await count(
                select(func.count(SessionQuestionModel.id)).where(
                    SessionQuestionModel.session_id == session_id,
                    SessionQuestionModel.status == QuestionStatus.ANSWERED.value,
                )
            )
            polls = await count(
                select(func.count(SessionPollModel.id)).where(
                    SessionPollModel.session_id == session_id
                )
            )
            poll_responses = await count(
                select(func.count(PollResponseModel.id))
                .join(SessionPollModel, SessionPollModel.id == PollResponseModel.poll_id)
                .where(SessionPollModel.session_id == session_id)
            )
            windows = await session.execute(
                select(SessionAttendanceModel.join_time, SessionAttendanceModel.left_time).where(
                    SessionAttendanceModel.session_id == session_id,
                    SessionAttendanceModel.join_time.is_not(None),
                    SessionAttendanceModel.left_time.is_not(None),
                )
            )
            minutes = [
                (left - joined).total_seconds() / 60 for joined, left in windows.all()
            ]

            return SessionAnalytics(
                session_id=session_id,
                registered=registered,
                attended=attended,
                attendance_rate=round(attended / registered, 4) if registered else 0.0,
                average_attendance_minutes=(
                    round(sum(minutes) / len(minutes), 2) if minutes else None
                ),
                roll_call_responses=roll_call_responses,
                messages=messages,
                questions=questions,
                answered_questions=answered,
                polls=polls,
                poll_responses=poll_responses,
            )
