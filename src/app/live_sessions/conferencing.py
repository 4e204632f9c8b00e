"""Video conferencing adapter.

VideoConferencingService is the single entry point the route layer uses to
talk to meeting providers. It dispatches through a closed registry keyed by
VideoProvider and owns the failure policy:

    create     provider error or missing token -> local fallback meeting
    update     provider error or missing token -> ProviderError propagates
    delete     any failure -> logged (video_conferencing.delete_failed), swallowed
    recording  any failure or no recording -> None
               (video_conferencing.recording_fetch_failed)

Strategies are attempted once; there is no retry and no idempotency key, so
two create calls create two meetings.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

import structlog

from src.app.config import Settings
from src.app.live_sessions import calendar
from src.app.live_sessions.providers import (
    Err,
    GoogleMeetProvider,
    MeetingProvider,
    Ok,
    ProviderConfigurationError,
    ProviderError,
    Result,
    ZohoProvider,
    ZoomProvider,
)
from src.app.live_sessions.providers.base import generate_meeting_password
from src.app.live_sessions.schemas import (
    MEETING_FIELDS,
    CalendarEvent,
    CalendarProvider,
    CalendarUrls,
    LiveSession,
    LiveSessionUpdate,
    MeetingCredentials,
    ProviderSettings,
    RecordingInfo,
    SessionDescription,
    VideoProvider,
)

FALLBACK_MEETING_PREFIX = "live-"


def is_fallback_meeting(meeting_id: str | None) -> bool:
    """True for locally generated meeting ids that have no remote counterpart."""
    return bool(meeting_id) and meeting_id.startswith(FALLBACK_MEETING_PREFIX)


class VideoConferencingService:
    """Provider-independent meeting lifecycle with a fixed failure policy.

    Args:
        providers: One strategy per VideoProvider member. Construction fails
            with ProviderConfigurationError if a member is missing or mapped
            to a strategy for a different provider.
        fallback_base_url: Room URL prefix for locally generated meetings.
        logger: structlog logger used for degraded-path events.
    """

    def __init__(
        self,
        providers: Mapping[VideoProvider, MeetingProvider],
        *,
        fallback_base_url: str,
        logger: Any = None,
    ) -> None:
        missing = [p.value for p in VideoProvider if p not in providers]
        if missing:
            raise ProviderConfigurationError(
                f"No meeting provider registered for: {', '.join(missing)}"
            )
        mismatched = [k.value for k, v in providers.items() if v.provider != k]
        if mismatched:
            raise ProviderConfigurationError(
                f"Meeting provider registered under the wrong key: {', '.join(mismatched)}"
            )
        self._providers = dict(providers)
        self._fallback_base_url = fallback_base_url.rstrip("/")
        self._logger = logger or structlog.get_logger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, logger: Any = None) -> VideoConferencingService:
        """Build the service with the production provider registry."""
        timeout = settings.PROVIDER_HTTP_TIMEOUT
        providers: dict[VideoProvider, MeetingProvider] = {
            VideoProvider.GOOGLE_MEET: GoogleMeetProvider(
                settings.GOOGLE_CALENDAR_API_URL,
                settings.GOOGLE_DRIVE_API_URL,
                timeout=timeout,
            ),
            VideoProvider.ZOOM: ZoomProvider(settings.ZOOM_API_URL, timeout=timeout),
            VideoProvider.ZOHO: ZohoProvider(settings.ZOHO_MEETING_API_URL, timeout=timeout),
        }
        return cls(
            providers,
            fallback_base_url=settings.FALLBACK_MEETING_BASE_URL,
            logger=logger,
        )

    def provider_for(self, provider: VideoProvider) -> MeetingProvider:
        return self._providers[provider]

    # ── Create ───────────────────────────────────────────────────────────────

    async def try_create_meeting(
        self,
        description: SessionDescription,
        provider_settings: ProviderSettings | None,
    ) -> Result[MeetingCredentials]:
        """Create the remote meeting, returning the failure instead of raising."""
        strategy = self._providers[description.provider]
        try:
            token = strategy.require_token(provider_settings)
            return Ok(await strategy.create_meeting(description, token))
        except ProviderError as exc:
            return Err(exc)
        except Exception as exc:
            self._logger.exception(
                "video_conferencing.create_unexpected_error",
                provider=description.provider.value,
            )
            return Err(ProviderError(description.provider, f"Unexpected error: {exc}"))

    async def create_meeting(
        self,
        description: SessionDescription,
        provider_settings: ProviderSettings | None,
    ) -> MeetingCredentials:
        """Create a meeting; on any failure return a local fallback meeting.

        Never raises. The returned credentials always carry a non-empty
        meeting_url and meeting_id.
        """
        result = await self.try_create_meeting(description, provider_settings)
        if isinstance(result, Ok):
            self._logger.info(
                "video_conferencing.meeting_created",
                provider=description.provider.value,
                meeting_id=result.value.meeting_id,
            )
            return result.value

        credentials = self.generate_meeting_credentials(description)
        self._logger.warning(
            "video_conferencing.create_failed",
            provider=description.provider.value,
            error=result.error.message,
            status_code=result.error.status_code,
            fallback_meeting_id=credentials.meeting_id,
        )
        return credentials

    # ── Update / Delete ──────────────────────────────────────────────────────

    async def update_meeting(
        self,
        session: LiveSession,
        provider_settings: ProviderSettings | None,
        updates: LiveSessionUpdate | Mapping[str, Any],
    ) -> MeetingCredentials:
        """Push title/time/description changes to the remote meeting.

        Returns the session's current credentials. Fallback meetings have
        nothing to update remotely and are returned unchanged.

        Raises:
            ProviderError: No remote meeting, missing token, or provider failure.
        """
        credentials = session.credentials()
        if credentials is None:
            raise ProviderError(session.provider, "Session has no meeting to update")
        if is_fallback_meeting(credentials.meeting_id):
            return credentials

        strategy = self._providers[session.provider]
        token = strategy.require_token(provider_settings)

        changes = updates.changes() if isinstance(updates, LiveSessionUpdate) else dict(updates)
        description = session.to_description().model_copy(
            update={k: v for k, v in changes.items() if k in MEETING_FIELDS and v is not None}
        )
        result = await strategy.update_meeting(credentials, description, token)
        self._logger.info(
            "video_conferencing.meeting_updated",
            provider=session.provider.value,
            meeting_id=credentials.meeting_id,
        )
        return result

    async def delete_meeting(
        self,
        session: LiveSession,
        provider_settings: ProviderSettings | None,
    ) -> None:
        """Delete the remote meeting. Never raises; failures are logged."""
        credentials = session.credentials()
        if credentials is None or is_fallback_meeting(credentials.meeting_id):
            return

        strategy = self._providers[session.provider]
        try:
            token = strategy.require_token(provider_settings)
            await strategy.delete_meeting(credentials, token)
        except Exception as exc:
            self._logger.warning(
                "video_conferencing.delete_failed",
                provider=session.provider.value,
                meeting_id=credentials.meeting_id,
                error=str(exc),
                status_code=getattr(exc, "status_code", None),
            )
            return
        self._logger.info(
            "video_conferencing.meeting_deleted",
            provider=session.provider.value,
            meeting_id=credentials.meeting_id,
        )

    # ── Recordings ───────────────────────────────────────────────────────────

    async def get_meeting_recording(
        self,
        meeting_id: str,
        provider: VideoProvider,
        provider_settings: ProviderSettings | None,
    ) -> RecordingInfo | None:
        """Fetch the first recording of a meeting, or None."""
        strategy = self._providers[provider]
        try:
            token = strategy.require_token(provider_settings)
            return await strategy.get_recording(meeting_id, token)
        except Exception as exc:
            self._logger.info(
                "video_conferencing.recording_fetch_failed",
                provider=provider.value,
                meeting_id=meeting_id,
                error=str(exc),
                status_code=getattr(exc, "status_code", None),
            )
            return None

    # ── Local Helpers ────────────────────────────────────────────────────────

    def generate_meeting_credentials(
        self, description: SessionDescription | None = None
    ) -> MeetingCredentials:
        """Locally generated meeting identity on the fallback room server."""
        meeting_id = f"{FALLBACK_MEETING_PREFIX}{int(time.time() * 1000)}"
        meeting_url = f"{self._fallback_base_url}/{meeting_id}"
        return MeetingCredentials(
            meeting_url=meeting_url,
            meeting_id=meeting_id,
            meeting_password=generate_meeting_password(),
            host_url=f"{meeting_url}?role=host",
        )

    @staticmethod
    def generate_meeting_password() -> str:
        return generate_meeting_password()

    def generate_calendar_urls(self, session: LiveSession) -> CalendarUrls:
        return calendar.generate_calendar_urls(session)

    def create_calendar_event(
        self, session: LiveSession, provider: CalendarProvider
    ) -> CalendarEvent:
        return calendar.create_calendar_event(session, provider)
