"""Live session REST endpoints.

Session scheduling (with remote meeting creation through the conferencing
adapter), join/leave attendance, roll calls, chat, Q&A, polls, recordings,
calendar export, and analytics.

All endpoints require authentication. Mentor/admin endpoints use
require_mentor; ownership of a session is checked per request.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from src.app.api.deps import (
    get_current_user,
    get_live_session_repository,
    get_video_conferencing,
    require_mentor,
)
from src.app.core.security import CurrentUser, Role
from src.app.live_sessions.calendar import build_session_ics
from src.app.live_sessions.conferencing import is_fallback_meeting
from src.app.live_sessions.schemas import (
    Attendance,
    CalendarEvent,
    CalendarProvider,
    CalendarUrls,
    LiveSession,
    LiveSessionCreate,
    LiveSessionUpdate,
    PollResponse,
    PollResponseCreate,
    PollResults,
    ProviderSettings,
    QuestionAnswer,
    QuestionStatus,
    RecordingInfo,
    RollCall,
    RollCallCreate,
    RollCallRespondRequest,
    RollCallResponse,
    SessionAnalytics,
    SessionMessage,
    SessionMessageCreate,
    SessionPoll,
    SessionPollCreate,
    SessionQuestion,
    SessionQuestionCreate,
    SessionStatus,
)

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["live-sessions"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class JoinResponse(BaseModel):
    session: LiveSession
    meeting_url: str | None = None
    calendar_urls: CalendarUrls


# ── Helpers ──────────────────────────────────────────────────────────────────


async def _get_session_or_404(repo: Any, session_id: int) -> LiveSession:
    session = await repo.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return session


def _is_host(session: LiveSession, user: CurrentUser) -> bool:
    return user.is_admin or session.mentor_id == user.id


def _ensure_host(session: LiveSession, user: CurrentUser) -> None:
    if not _is_host(session, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage this session",
        )


async def _ensure_can_attend(repo: Any, session: LiveSession, user: CurrentUser) -> None:
    """Hosts, admins and students enrolled in the session's course may attend."""
    if _is_host(session, user):
        return
    if not await repo.is_user_enrolled_in_course(user.id, session.course_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enrolled in this course",
        )


async def _get_attendable_session(repo: Any, session_id: int, user: CurrentUser) -> LiveSession:
    """Load the session (404) and check the caller may take part in it (403)."""
    session = await _get_session_or_404(repo, session_id)
    await _ensure_can_attend(repo, session, user)
    return session


async def _get_hosted_session(repo: Any, session_id: int, user: CurrentUser) -> LiveSession:
    """Load the session (404) and check the caller owns it or is an admin (403)."""
    session = await _get_session_or_404(repo, session_id)
    _ensure_host(session, user)
    return session


def _ensure_feature(enabled: bool, feature: str) -> None:
    if not enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{feature} is disabled for this session",
        )


def _view_for(session: LiveSession, user: CurrentUser) -> LiveSession:
    """Hide host-only credentials from attendees."""
    if _is_host(session, user):
        return session
    return session.model_copy(update={"host_key": None, "host_url": None})


async def _provider_settings_for(repo: Any, session: LiveSession) -> ProviderSettings | None:
    """Credentials of the mentor who owns the session's remote meeting."""
    setting = await repo.get_video_provider_settings(session.mentor_id, session.provider)
    return setting.to_provider_settings() if setting else None


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Listings ─────────────────────────────────────────────────────────────────


@router.get("/courses/{course_id}/live-sessions", response_model=list[LiveSession])
async def list_course_sessions(
    course_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> list[LiveSession]:
    """Sessions of a course; students must be enrolled in it."""
    allowed = user.has_role(Role.MENTOR, Role.ADMIN) or await repo.is_user_enrolled_in_course(
        user.id, course_id
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enrolled in this course",
        )
    sessions = await repo.list_sessions_by_course(course_id)
    return [_view_for(s, user) for s in sessions]


@router.get("/student/upcoming-sessions", response_model=list[LiveSession])
async def list_upcoming_sessions(
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> list[LiveSession]:
    """Future, non-cancelled sessions in the caller's enrolled courses."""
    sessions = await repo.list_sessions_for_student(user.id, start_from=_now())
    return [
        _view_for(s, user) for s in sessions if s.status != SessionStatus.CANCELLED
    ]


@router.get("/student/schedule", response_model=list[LiveSession])
async def student_schedule(
    start_date: datetime | None = Query(default=None, description="Earliest start (ISO format)"),
    end_date: datetime | None = Query(default=None, description="Latest start (ISO format)"),
    status_filter: str | None = Query(
        default=None,
        alias="status",
        pattern="^(upcoming|live|past)$",
        description="upcoming, live or past",
    ),
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> list[LiveSession]:
    """All sessions of the caller's enrolled courses, optionally filtered."""
    if start_date is not None and start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=timezone.utc)
    if end_date is not None and end_date.tzinfo is None:
        end_date = end_date.replace(tzinfo=timezone.utc)

    sessions = await repo.list_sessions_for_student(
        user.id, start_from=start_date, start_to=end_date
    )
    if status_filter:
        now = _now()
        if status_filter == "upcoming":
            sessions = [s for s in sessions if s.start_time > now]
        elif status_filter == "live":
            sessions = [s for s in sessions if s.start_time <= now <= s.effective_end_time]
        else:
            sessions = [s for s in sessions if s.effective_end_time < now]
    return [_view_for(s, user) for s in sessions]


@router.get("/mentor/live-sessions", response_model=list[LiveSession])
async def list_mentor_sessions(
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> list[LiveSession]:
    return await repo.list_sessions_by_mentor(user.id)


# ── Session CRUD ─────────────────────────────────────────────────────────────


@router.post(
    "/live-sessions",
    response_model=LiveSession,
    status_code=status.HTTP_201_CREATED,
)
async def create_live_session(
    body: LiveSessionCreate,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> LiveSession:
    """Schedule a session: create the remote meeting, persist, auto-enroll.

    Meeting creation never fails the request; a provider failure yields a
    fallback meeting on the platform's own room server.
    """
    setting = await repo.get_video_provider_settings(user.id, body.provider)
    credentials = await conferencing.create_meeting(
        body.to_description(),
        setting.to_provider_settings() if setting else None,
    )
    session = await repo.create_session(user.id, body, credentials)
    enrolled = await repo.enroll_students_in_session(session.id, session.course_id)
    logger.info(
        "live_session.scheduled",
        session_id=session.id,
        mentor_id=user.id,
        provider=session.provider.value,
        fallback=is_fallback_meeting(session.meeting_id),
        enrolled=enrolled,
    )
    return session


@router.get("/live-sessions/{session_id}", response_model=LiveSession)
async def get_live_session(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> LiveSession:
    session = await _get_attendable_session(repo, session_id, user)
    return _view_for(session, user)


@router.put("/live-sessions/{session_id}", response_model=LiveSession)
async def update_live_session(
    session_id: int,
    body: LiveSessionUpdate,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> LiveSession:
    """Update a session; meeting-visible changes are pushed to the provider first.

    A provider failure aborts the update (502) and leaves the session unchanged.
    """
    session = await _get_hosted_session(repo, session_id, user)

    updates = body.localized(session.timezone)
    changes = updates.changes()
    start = changes.get("start_time") or session.start_time
    end = changes["end_time"] if "end_time" in changes else session.end_time
    if end is not None and end <= start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_time must be after start_time",
        )

    credentials = None
    if updates.touches_meeting() and session.meeting_id:
        credentials = await conferencing.update_meeting(
            session, await _provider_settings_for(repo, session), updates
        )

    updated = await repo.update_session(session_id, changes, credentials)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    logger.info("live_session.updated", session_id=session_id, fields=sorted(changes))
    return updated


@router.delete("/live-sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_live_session(
    session_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> Response:
    """Delete a session. The remote meeting is removed best-effort."""
    session = await _get_hosted_session(repo, session_id, user)
    await conferencing.delete_meeting(session, await _provider_settings_for(repo, session))
    await repo.delete_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/live-sessions/{session_id}/start", response_model=LiveSession)
async def start_live_session(
    session_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> LiveSession:
    await _get_hosted_session(repo, session_id, user)
    return await repo.update_session(session_id, {"status": SessionStatus.LIVE})


@router.post("/live-sessions/{session_id}/end", response_model=LiveSession)
async def end_live_session(
    session_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> LiveSession:
    """Mark the session completed and cache its recording if one is ready."""
    session = await _get_hosted_session(repo, session_id, user)
    updated = await repo.update_session(session_id, {"status": SessionStatus.COMPLETED})

    if session.meeting_id and not is_fallback_meeting(session.meeting_id):
        recording = await conferencing.get_meeting_recording(
            session.meeting_id,
            session.provider,
            await _provider_settings_for(repo, session),
        )
        if recording is not None:
            updated = await repo.save_recording(session_id, recording)
    return updated


# ── Attendance ───────────────────────────────────────────────────────────────


@router.post("/live-sessions/{session_id}/join", response_model=JoinResponse)
async def join_live_session(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> JoinResponse:
    """Record attendance and hand out the meeting URL and calendar links."""
    session = await _get_attendable_session(repo, session_id, user)
    await repo.record_attendance(session_id, user.id)
    return JoinResponse(
        session=_view_for(session, user),
        meeting_url=session.meeting_url,
        calendar_urls=conferencing.generate_calendar_urls(session),
    )


@router.post("/live-sessions/{session_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_live_session(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> Response:
    await _get_attendable_session(repo, session_id, user)
    await repo.mark_left(session_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/live-sessions/{session_id}/attendance", response_model=list[Attendance])
async def get_session_attendance(
    session_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> list[Attendance]:
    await _get_hosted_session(repo, session_id, user)
    return await repo.get_attendance(session_id)


# ── Roll Calls ───────────────────────────────────────────────────────────────


@router.post(
    "/live-sessions/{session_id}/roll-call",
    response_model=RollCall,
    status_code=status.HTTP_201_CREATED,
)
async def start_roll_call(
    session_id: int,
    body: RollCallCreate | None = None,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> RollCall:
    await _get_hosted_session(repo, session_id, user)
    duration = (body or RollCallCreate()).duration
    return await repo.create_roll_call(session_id, user.id, duration)


@router.post(
    "/live-sessions/{session_id}/roll-call/{roll_call_id}/respond",
    response_model=RollCallResponse,
    status_code=status.HTTP_201_CREATED,
)
async def respond_to_roll_call(
    session_id: int,
    roll_call_id: int,
    body: RollCallRespondRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> RollCallResponse:
    await _get_attendable_session(repo, session_id, user)
    roll_call = await repo.get_roll_call(roll_call_id)
    if roll_call is None or roll_call.session_id != session_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Roll call not found",
        )
    if not roll_call.is_open(_now()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Roll call has expired",
        )
    method = (body or RollCallRespondRequest()).response_method
    return await repo.respond_to_roll_call(roll_call_id, user.id, method)


# ── Chat ─────────────────────────────────────────────────────────────────────


@router.post(
    "/live-sessions/{session_id}/messages",
    response_model=SessionMessage,
    status_code=status.HTTP_201_CREATED,
)
async def send_session_message(
    session_id: int,
    body: SessionMessageCreate,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> SessionMessage:
    session = await _get_attendable_session(repo, session_id, user)
    _ensure_feature(session.chat_enabled, "Chat")
    return await repo.create_message(session_id, user.id, body)


@router.get("/live-sessions/{session_id}/messages", response_model=list[SessionMessage])
async def list_session_messages(
    session_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> list[SessionMessage]:
    await _get_attendable_session(repo, session_id, user)
    messages = await repo.list_messages(session_id, page=page, limit=limit)
    return [m for m in messages if not m.is_private or m.user_id == user.id or user.is_admin]


# ── Q&A ──────────────────────────────────────────────────────────────────────


@router.post(
    "/live-sessions/{session_id}/qa",
    response_model=SessionQuestion,
    status_code=status.HTTP_201_CREATED,
)
async def ask_question(
    session_id: int,
    body: SessionQuestionCreate,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> SessionQuestion:
    session = await _get_attendable_session(repo, session_id, user)
    _ensure_feature(session.qna_enabled, "Q&A")
    return await repo.create_question(session_id, user.id, body)


@router.put(
    "/live-sessions/{session_id}/qa/{question_id}/answer",
    response_model=SessionQuestion,
)
async def answer_question(
    session_id: int,
    question_id: int,
    body: QuestionAnswer,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> SessionQuestion:
    await _get_hosted_session(repo, session_id, user)
    question = await repo.answer_question(session_id, question_id, user.id, body.answer)
    if question is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Question not found",
        )
    return question


@router.get("/live-sessions/{session_id}/qa", response_model=list[SessionQuestion])
async def list_questions(
    session_id: int,
    status_filter: QuestionStatus | None = Query(default=None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> list[SessionQuestion]:
    await _get_attendable_session(repo, session_id, user)
    return await repo.list_questions(session_id, status_filter)


# ── Polls ────────────────────────────────────────────────────────────────────


async def _get_poll_or_404(repo: Any, session_id: int, poll_id: int) -> SessionPoll:
    poll = await repo.get_poll(poll_id)
    if poll is None or poll.session_id != session_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Poll not found",
        )
    return poll


@router.post(
    "/live-sessions/{session_id}/polls",
    response_model=SessionPoll,
    status_code=status.HTTP_201_CREATED,
)
async def create_poll(
    session_id: int,
    body: SessionPollCreate,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> SessionPoll:
    session = await _get_hosted_session(repo, session_id, user)
    _ensure_feature(session.polls_enabled, "Polls")
    return await repo.create_poll(session_id, user.id, body)


@router.put("/live-sessions/{session_id}/polls/{poll_id}/close", response_model=SessionPoll)
async def close_poll(
    session_id: int,
    poll_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> SessionPoll:
    await _get_hosted_session(repo, session_id, user)
    await _get_poll_or_404(repo, session_id, poll_id)
    return await repo.close_poll(poll_id)


@router.post(
    "/live-sessions/{session_id}/polls/{poll_id}/respond",
    response_model=PollResponse,
    status_code=status.HTTP_201_CREATED,
)
async def respond_to_poll(
    session_id: int,
    poll_id: int,
    body: PollResponseCreate,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> PollResponse:
    await _get_attendable_session(repo, session_id, user)
    poll = await _get_poll_or_404(repo, session_id, poll_id)
    if not poll.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Poll is closed",
        )
    try:
        poll.validate_response(body.response)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return await repo.respond_to_poll(poll_id, user.id, body.response)


@router.get(
    "/live-sessions/{session_id}/polls/{poll_id}/results",
    response_model=PollResults,
)
async def get_poll_results(
    session_id: int,
    poll_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> PollResults:
    await _get_attendable_session(repo, session_id, user)
    await _get_poll_or_404(repo, session_id, poll_id)
    return await repo.get_poll_results(poll_id)


# ── Recording ────────────────────────────────────────────────────────────────


@router.get("/live-sessions/{session_id}/recording", response_model=RecordingInfo)
async def get_session_recording(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> RecordingInfo:
    """Cached recording, else fetch from the provider and cache it."""
    session = await _get_attendable_session(repo, session_id, user)

    cached = session.recording()
    if cached is not None:
        return cached

    recording = None
    if session.meeting_id and not is_fallback_meeting(session.meeting_id):
        recording = await conferencing.get_meeting_recording(
            session.meeting_id,
            session.provider,
            await _provider_settings_for(repo, session),
        )
    if recording is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recording not available",
        )
    await repo.save_recording(session_id, recording)
    return recording


# ── Calendar Export ──────────────────────────────────────────────────────────


@router.get("/live-sessions/{session_id}/calendar", response_model=CalendarEvent)
async def get_calendar_event(
    session_id: int,
    provider: CalendarProvider = Query(default=CalendarProvider.GOOGLE),
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> CalendarEvent:
    session = await _get_attendable_session(repo, session_id, user)
    return conferencing.create_calendar_event(session, provider)


@router.get("/live-sessions/{session_id}/calendar-urls", response_model=CalendarUrls)
async def get_calendar_urls(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
    conferencing: Any = Depends(get_video_conferencing),
) -> CalendarUrls:
    session = await _get_attendable_session(repo, session_id, user)
    return conferencing.generate_calendar_urls(session)


@router.get("/live-sessions/{session_id}/calendar.ics")
async def download_calendar_file(
    session_id: int,
    user: CurrentUser = Depends(get_current_user),
    repo: Any = Depends(get_live_session_repository),
) -> Response:
    session = await _get_attendable_session(repo, session_id, user)
    return Response(
        content=build_session_ics(session),
        media_type="text/calendar",
        headers={
            "Content-Disposition": f'attachment; filename="live-session-{session_id}.ics"',
        },
    )


# ── Analytics ────────────────────────────────────────────────────────────────


@router.get("/live-sessions/{session_id}/analytics", response_model=SessionAnalytics)
async def get_session_analytics(
    session_id: int,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> SessionAnalytics:
    session = await _get_hosted_session(repo, session_id, user)
    return await repo.get_session_analytics(session_id)
