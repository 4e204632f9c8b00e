"""Zoho Meeting strategy (Zoho Meeting API v2, Zoho-oauthtoken auth)."""

from __future__ import annotations

from src.app.live_sessions.providers.base import (
    MeetingProvider,
    generate_meeting_password,
    isoformat_utc,
)
from src.app.live_sessions.schemas import (
    MeetingCredentials,
    RecordingInfo,
    SessionDescription,
    VideoProvider,
)


class ZohoProvider(MeetingProvider):
    provider = VideoProvider.ZOHO

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Zoho-oauthtoken {token}",
            "Content-Type": "application/json",
        }

    async def create_meeting(
        self, description: SessionDescription, token: str
    ) -> MeetingCredentials:
        payload = {
            "topic": description.title,
            "agenda": description.description or "",
            "startTime": isoformat_utc(description.start_time),
            "duration": description.duration,
            "timezone": description.timezone,
            "password": generate_meeting_password(),
            "settings": {
                "hostVideo": True,
                "participantVideo": True,
                "muteUponEntry": True,
                "autoRecording": description.auto_record,
                "waitingRoom": description.waiting_room_enabled,
            },
        }
        response = await self._request("POST", "/meetings", token, json=payload)
        data = self._json(response)
        return self._credentials(
            meeting_url=data.get("meetingUrl"),
            meeting_id=data.get("meetingKey"),
            meeting_password=data.get("password"),
            host_url=data.get("hostUrl"),
        )

    async def update_meeting(
        self,
        credentials: MeetingCredentials,
        description: SessionDescription,
        token: str,
    ) -> MeetingCredentials:
        payload = {
            "topic": description.title,
            "startTime": isoformat_utc(description.start_time),
            "duration": description.duration,
            "agenda": description.description or "",
        }
        await self._request("PUT", f"/meetings/{credentials.meeting_id}", token, json=payload)
        return credentials

    async def delete_meeting(self, credentials: MeetingCredentials, token: str) -> None:
        await self._request("DELETE", f"/meetings/{credentials.meeting_id}", token)

    async def get_recording(self, meeting_id: str, token: str) -> RecordingInfo | None:
        response = await self._request("GET", f"/meetings/{meeting_id}/recordings", token)
        recordings = self._json(response).get("recordings") or []
        if not recordings:
            return None
        recording = recordings[0]
        return RecordingInfo(
            recording_url=recording.get("downloadUrl") or "",
            recording_id=str(recording.get("recordingId", "")),
            recording_size=recording.get("fileSize"),
            recording_duration=recording.get("duration"),
        )
