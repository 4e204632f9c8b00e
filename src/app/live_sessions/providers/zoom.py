"""Zoom meeting strategy (Zoom API v2, OAuth bearer token)."""

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

# Zoom meeting type 2 is a scheduled meeting.
SCHEDULED_MEETING = 2


class ZoomProvider(MeetingProvider):
    """Creates scheduled Zoom meetings on the token owner's account (users/me)."""

    provider = VideoProvider.ZOOM

    async def create_meeting(
        self, description: SessionDescription, token: str
    ) -> MeetingCredentials:
        payload = {
            "topic": description.title,
            "type": SCHEDULED_MEETING,
            "start_time": isoformat_utc(description.start_time),
            "duration": description.duration,
            "timezone": description.timezone,
            "password": generate_meeting_password(),
            "agenda": description.description or "",
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": not description.waiting_room_enabled,
                "mute_upon_entry": True,
                "approval_type": 0,
                "auto_recording": "cloud" if description.auto_record else "none",
                "waiting_room": description.waiting_room_enabled,
            },
        }
        response = await self._request("POST", "/users/me/meetings", token, json=payload)
        data = self._json(response)
        return self._credentials(
            meeting_url=data.get("join_url"),
            meeting_id=data.get("id"),
            meeting_password=data.get("password"),
            host_key=data.get("host_key"),
            host_url=data.get("start_url"),
        )

    async def update_meeting(
        self,
        credentials: MeetingCredentials,
        description: SessionDescription,
        token: str,
    ) -> MeetingCredentials:
        payload = {
            "topic": description.title,
            "start_time": isoformat_utc(description.start_time),
            "duration": description.duration,
            "agenda": description.description or "",
        }
        await self._request("PATCH", f"/meetings/{credentials.meeting_id}", token, json=payload)
        return credentials

    async def delete_meeting(self, credentials: MeetingCredentials, token: str) -> None:
        await self._request("DELETE", f"/meetings/{credentials.meeting_id}", token)

    async def get_recording(self, meeting_id: str, token: str) -> RecordingInfo | None:
        response = await self._request("GET", f"/meetings/{meeting_id}/recordings", token)
        data = self._json(response)
        files = data.get("recording_files") or []
        if not files:
            return None
        recording = files[0]
        return RecordingInfo(
            recording_url=recording.get("download_url") or recording.get("play_url") or "",
            recording_id=str(recording.get("id", "")),
            recording_password=data.get("password"),
            recording_size=recording.get("file_size"),
            recording_duration=data.get("duration"),
        )
