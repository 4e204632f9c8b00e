"""Google Meet strategy.

Meet links are created as conference data on a Google Calendar event
(Calendar API v3, conferenceDataVersion=1). The event id is kept as
provider_event_id so the event can later be patched or deleted. Recordings
land in the organiser's Google Drive and are found by a file name search.
"""

from __future__ import annotations

import time

import structlog

from src.app.live_sessions.providers.base import MeetingProvider
from src.app.live_sessions.schemas import (
    MeetingCredentials,
    RecordingInfo,
    SessionDescription,
    VideoProvider,
)

logger = structlog.get_logger(__name__)

DRIVE_FILE_URL = "https://drive.google.com/file/d/{file_id}/view"


class GoogleMeetProvider(MeetingProvider):
    """Google Calendar + Meet strategy.

    Args:
        base_url: Calendar API root.
        drive_url: Drive API root, used for recording lookup.
        timeout: Seconds allowed for each HTTP call.
    """

    provider = VideoProvider.GOOGLE_MEET

    def __init__(self, base_url: str, drive_url: str, timeout: float = 30.0) -> None:
        super().__init__(base_url, timeout)
        self._drive_url = drive_url.rstrip("/")

    def _event_body(self, description: SessionDescription) -> dict:
        return {
            "summary": description.title,
            "description": description.description or "",
            "start": {
                "dateTime": description.start_time.isoformat(),
                "timeZone": description.timezone,
            },
            "end": {
                "dateTime": description.effective_end_time.isoformat(),
                "timeZone": description.timezone,
            },
        }

    async def create_meeting(
        self, description: SessionDescription, token: str
    ) -> MeetingCredentials:
        body = self._event_body(description)
        body["conferenceData"] = {
            "createRequest": {
                "requestId": f"meet-{int(time.time() * 1000)}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }
        response = await self._request(
            "POST",
            "/calendars/primary/events",
            token,
            params={"conferenceDataVersion": 1},
            json=body,
        )
        event = self._json(response)
        conference = event.get("conferenceData") or {}
        entry_points = conference.get("entryPoints") or []
        meet_url = next(
            (ep.get("uri") for ep in entry_points if ep.get("entryPointType") == "video"),
            entry_points[0].get("uri") if entry_points else None,
        )
        return self._credentials(
            meeting_url=meet_url,
            meeting_id=conference.get("conferenceId") or event.get("id"),
            host_url=meet_url,
            provider_event_id=event.get("id"),
        )

    async def update_meeting(
        self,
        credentials: MeetingCredentials,
        description: SessionDescription,
        token: str,
    ) -> MeetingCredentials:
        if not credentials.provider_event_id:
            logger.info(
                "google_meet.update_skipped",
                meeting_id=credentials.meeting_id,
                reason="no calendar event id",
            )
            return credentials
        await self._request(
            "PATCH",
            f"/calendars/primary/events/{credentials.provider_event_id}",
            token,
            json=self._event_body(description),
        )
        return credentials

    async def delete_meeting(self, credentials: MeetingCredentials, token: str) -> None:
        if not credentials.provider_event_id:
            logger.warning(
                "google_meet.manual_cleanup_required",
                meeting_id=credentials.meeting_id,
            )
            return
        await self._request(
            "DELETE",
            f"/calendars/primary/events/{credentials.provider_event_id}",
            token,
        )

    async def get_recording(self, meeting_id: str, token: str) -> RecordingInfo | None:
        query = f"name contains '{meeting_id}' and mimeType contains 'video'"
        response = await self._request(
            "GET",
            "/files",
            token,
            base_url=self._drive_url,
            params={"q": query, "fields": "files(id,name,size)"},
        )
        files = self._json(response).get("files") or []
        if not files:
            return None
        file = files[0]
        return RecordingInfo(
            recording_url=DRIVE_FILE_URL.format(file_id=file["id"]),
            recording_id=file["id"],
            recording_size=int(file.get("size") or 0),
        )
