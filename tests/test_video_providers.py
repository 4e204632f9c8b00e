"""Tests for the Google Meet, Zoom and Zoho meeting strategies.

Every test mocks httpx.AsyncClient.request; no real HTTP calls are made.
Covers request shape, response normalisation into MeetingCredentials and
RecordingInfo, and the ProviderError raised for every failure mode.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.app.live_sessions.providers import (
    GoogleMeetProvider,
    ProviderError,
    ZohoProvider,
    ZoomProvider,
)
from src.app.live_sessions.providers.base import generate_meeting_password, isoformat_utc
from src.app.live_sessions.schemas import (
    MeetingCredentials,
    ProviderSettings,
    VideoProvider,
)

GOOGLE_API = "https://calendar.test/v3"
DRIVE_API = "https://drive.test/v3"
ZOOM_API = "https://zoom.test/v2"
ZOHO_API = "https://zoho.test/api/v2"


def _response(status_code: int = 200, json=None, text: str | None = None) -> httpx.Response:
    request = httpx.Request("GET", "https://provider.test")
    if text is not None:
        return httpx.Response(status_code, text=text, request=request)
    return httpx.Response(status_code, json=json, request=request)


# ── Shared Helpers ───────────────────────────────────────────────────────────


class TestProviderHelpers:
    def test_meeting_password_is_eight_uppercase_hex(self):
        for _ in range(20):
            assert re.fullmatch(r"[0-9A-F]{8}", generate_meeting_password())

    def test_isoformat_utc_naive(self):
        assert isoformat_utc(datetime(2025, 6, 1, 10, 0)) == "2025-06-01T10:00:00Z"

    def test_isoformat_utc_converts_offset(self):
        value = datetime(2025, 6, 1, 5, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert isoformat_utc(value) == "2025-06-01T10:00:00Z"

    def test_require_token_missing_settings(self):
        with pytest.raises(ProviderError) as exc_info:
            ZoomProvider(ZOOM_API).require_token(None)
        assert exc_info.value.provider == VideoProvider.ZOOM
        assert exc_info.value.status_code is None

    def test_require_token_empty_token(self):
        settings = ProviderSettings(provider=VideoProvider.ZOHO, access_token="")
        with pytest.raises(ProviderError):
            ZohoProvider(ZOHO_API).require_token(settings)

    def test_require_token_returns_token(self):
        settings = ProviderSettings(provider=VideoProvider.ZOOM, access_token="tok")
        assert ZoomProvider(ZOOM_API).require_token(settings) == "tok"

    def test_provider_error_str(self):
        error = ProviderError(VideoProvider.ZOOM, "boom", status_code=500)
        assert str(error) == "zoom: boom"
        assert error.message == "boom"
        assert error.status_code == 500

    def test_bearer_headers(self):
        headers = ZoomProvider(ZOOM_API)._headers("tok")
        assert headers["Authorization"] == "Bearer tok"

    def test_zoho_uses_oauthtoken_scheme(self):
        headers = ZohoProvider(ZOHO_API)._headers("tok")
        assert headers["Authorization"] == "Zoho-oauthtoken tok"


# ── Zoom ─────────────────────────────────────────────────────────────────────


ZOOM_MEETING = {
    "id": 123456789,
    "join_url": "https://zoom.us/j/123456789",
    "password": "PW123456",
    "host_key": "998877",
    "start_url": "https://zoom.us/s/123456789?zak=host",
}


class TestZoomProvider:
    @pytest.mark.asyncio
    async def test_create_maps_response_fields(self, description):
        provider = ZoomProvider(ZOOM_API)
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(201, json=ZOOM_MEETING),
        ):
            credentials = await provider.create_meeting(description, "tok")

        assert credentials == MeetingCredentials(
            meeting_url="https://zoom.us/j/123456789",
            meeting_id="123456789",
            meeting_password="PW123456",
            host_key="998877",
            host_url="https://zoom.us/s/123456789?zak=host",
        )

    @pytest.mark.asyncio
    async def test_create_request_payload(self, description):
        provider = ZoomProvider(ZOOM_API)
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(201, json=ZOOM_MEETING),
        ) as mock_request:
            await provider.create_meeting(description, "tok")

        method, url = mock_request.call_args.args
        payload = mock_request.call_args.kwargs["json"]
        assert method == "POST"
        assert url == f"{ZOOM_API}/users/me/meetings"
        assert payload["topic"] == "Intro to JS"
        assert payload["type"] == 2
        assert payload["start_time"] == "2025-06-01T10:00:00Z"
        assert payload["duration"] == 60
        assert payload["agenda"] == "Variables and functions"
        assert re.fullmatch(r"[0-9A-F]{8}", payload["password"])
        assert payload["settings"]["auto_recording"] == "cloud"
        assert payload["settings"]["waiting_room"] is True
        assert payload["settings"]["join_before_host"] is False

    @pytest.mark.asyncio
    async def test_create_without_recording_or_waiting_room(self, description):
        description = description.model_copy(
            update={"auto_record": False, "waiting_room_enabled": False}
        )
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(201, json=ZOOM_MEETING),
        ) as mock_request:
            await ZoomProvider(ZOOM_API).create_meeting(description, "tok")

        settings = mock_request.call_args.kwargs["json"]["settings"]
        assert settings["auto_recording"] == "none"
        assert settings["join_before_host"] is True

    @pytest.mark.asyncio
    async def test_create_http_error_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(500, json={"message": "server error"}),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await ZoomProvider(ZOOM_API).create_meeting(description, "tok")
        assert exc_info.value.status_code == 500
        assert exc_info.value.provider == VideoProvider.ZOOM

    @pytest.mark.asyncio
    async def test_create_transport_error_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("connection refused"),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await ZoomProvider(ZOOM_API).create_meeting(description, "tok")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_create_missing_join_url_raises(self, description):
        body = {k: v for k, v in ZOOM_MEETING.items() if k != "join_url"}
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(201, json=body),
        ):
            with pytest.raises(ProviderError):
                await ZoomProvider(ZOOM_API).create_meeting(description, "tok")

    @pytest.mark.asyncio
    async def test_create_non_json_body_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, text="<html>oops</html>"),
        ):
            with pytest.raises(ProviderError):
                await ZoomProvider(ZOOM_API).create_meeting(description, "tok")

    @pytest.mark.asyncio
    async def test_create_json_array_body_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=[ZOOM_MEETING]),
        ):
            with pytest.raises(ProviderError):
                await ZoomProvider(ZOOM_API).create_meeting(description, "tok")

    @pytest.mark.asyncio
    async def test_update_patches_meeting(self, description):
        credentials = MeetingCredentials(meeting_url="https://zoom.us/j/1", meeting_id="1")
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(204),
        ) as mock_request:
            result = await ZoomProvider(ZOOM_API).update_meeting(credentials, description, "tok")

        assert result == credentials
        assert mock_request.call_args.args == ("PATCH", f"{ZOOM_API}/meetings/1")
        assert mock_request.call_args.kwargs["json"]["topic"] == "Intro to JS"

    @pytest.mark.asyncio
    async def test_delete_meeting(self):
        credentials = MeetingCredentials(meeting_url="https://zoom.us/j/1", meeting_id="1")
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(204),
        ) as mock_request:
            await ZoomProvider(ZOOM_API).delete_meeting(credentials, "tok")
        assert mock_request.call_args.args == ("DELETE", f"{ZOOM_API}/meetings/1")

    @pytest.mark.asyncio
    async def test_get_recording_maps_first_file(self):
        body = {
            "password": "RECPASS",
            "duration": 45,
            "recording_files": [
                {"id": "rec-1", "download_url": "https://zoom.us/rec/download/1", "file_size": 1024},
                {"id": "rec-2", "download_url": "https://zoom.us/rec/download/2", "file_size": 2048},
            ],
        }
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=body),
        ) as mock_request:
            recording = await ZoomProvider(ZOOM_API).get_recording("123", "tok")

        assert mock_request.call_args.args == ("GET", f"{ZOOM_API}/meetings/123/recordings")
        assert recording.recording_url == "https://zoom.us/rec/download/1"
        assert recording.recording_id == "rec-1"
        assert recording.recording_password == "RECPASS"
        assert recording.recording_size == 1024
        assert recording.recording_duration == 45

    @pytest.mark.asyncio
    async def test_get_recording_falls_back_to_play_url(self):
        body = {"recording_files": [{"id": 9, "play_url": "https://zoom.us/rec/play/9"}]}
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=body),
        ):
            recording = await ZoomProvider(ZOOM_API).get_recording("123", "tok")
        assert recording.recording_url == "https://zoom.us/rec/play/9"
        assert recording.recording_id == "9"

    @pytest.mark.asyncio
    async def test_get_recording_without_files_is_none(self):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={"recording_files": []}),
        ):
            assert await ZoomProvider(ZOOM_API).get_recording("123", "tok") is None

    @pytest.mark.asyncio
    async def test_get_recording_not_found_raises(self):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(404, json={"code": 3301}),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await ZoomProvider(ZOOM_API).get_recording("123", "tok")
        assert exc_info.value.status_code == 404


# ── Zoho ─────────────────────────────────────────────────────────────────────


class TestZohoProvider:
    @pytest.mark.asyncio
    async def test_create_maps_response_fields(self, description):
        body = {
            "meetingUrl": "https://meeting.zoho.com/join?key=1029384756",
            "meetingKey": 1029384756,
            "password": "ZPASS123",
            "hostUrl": "https://meeting.zoho.com/start?key=1029384756",
        }
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=body),
        ) as mock_request:
            credentials = await ZohoProvider(ZOHO_API).create_meeting(description, "tok")

        assert credentials.meeting_url == "https://meeting.zoho.com/join?key=1029384756"
        assert credentials.meeting_id == "1029384756"
        assert credentials.meeting_password == "ZPASS123"
        assert credentials.host_url == "https://meeting.zoho.com/start?key=1029384756"
        assert credentials.host_key is None

        method, url = mock_request.call_args.args
        payload = mock_request.call_args.kwargs["json"]
        assert (method, url) == ("POST", f"{ZOHO_API}/meetings")
        assert payload["startTime"] == "2025-06-01T10:00:00Z"
        assert payload["settings"]["autoRecording"] is True

    @pytest.mark.asyncio
    async def test_create_missing_meeting_key_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={"meetingUrl": "https://meeting.zoho.com/j"}),
        ):
            with pytest.raises(ProviderError):
                await ZohoProvider(ZOHO_API).create_meeting(description, "tok")

    @pytest.mark.asyncio
    async def test_update_puts_meeting(self, description):
        credentials = MeetingCredentials(meeting_url="https://meeting.zoho.com/j", meeting_id="55")
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={}),
        ) as mock_request:
            await ZohoProvider(ZOHO_API).update_meeting(credentials, description, "tok")
        assert mock_request.call_args.args == ("PUT", f"{ZOHO_API}/meetings/55")

    @pytest.mark.asyncio
    async def test_get_recording_maps_first_recording(self):
        body = {
            "recordings": [
                {
                    "downloadUrl": "https://meeting.zoho.com/rec/55",
                    "recordingId": 55,
                    "fileSize": 2048,
                    "duration": 30,
                }
            ]
        }
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=body),
        ):
            recording = await ZohoProvider(ZOHO_API).get_recording("55", "tok")

        assert recording.recording_url == "https://meeting.zoho.com/rec/55"
        assert recording.recording_id == "55"
        assert recording.recording_size == 2048
        assert recording.recording_duration == 30

    @pytest.mark.asyncio
    async def test_get_recording_without_recordings_is_none(self):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={}),
        ):
            assert await ZohoProvider(ZOHO_API).get_recording("55", "tok") is None


# ── Google Meet ──────────────────────────────────────────────────────────────


GOOGLE_EVENT = {
    "id": "evt123",
    "conferenceData": {
        "conferenceId": "abc-defg-hij",
        "entryPoints": [
            {"entryPointType": "phone", "uri": "tel:+1-555-0100"},
            {"entryPointType": "video", "uri": "https://meet.google.com/abc-defg-hij"},
        ],
    },
}


class TestGoogleMeetProvider:
    def _provider(self) -> GoogleMeetProvider:
        return GoogleMeetProvider(GOOGLE_API, DRIVE_API)

    @pytest.mark.asyncio
    async def test_create_uses_video_entry_point(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=GOOGLE_EVENT),
        ):
            credentials = await self._provider().create_meeting(description, "tok")

        assert credentials.meeting_url == "https://meet.google.com/abc-defg-hij"
        assert credentials.meeting_id == "abc-defg-hij"
        assert credentials.host_url == "https://meet.google.com/abc-defg-hij"
        assert credentials.provider_event_id == "evt123"
        assert credentials.meeting_password is None

    @pytest.mark.asyncio
    async def test_create_request_shape(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=GOOGLE_EVENT),
        ) as mock_request:
            await self._provider().create_meeting(description, "tok")

        assert mock_request.call_args.args == ("POST", f"{GOOGLE_API}/calendars/primary/events")
        kwargs = mock_request.call_args.kwargs
        assert kwargs["params"] == {"conferenceDataVersion": 1}
        body = kwargs["json"]
        assert body["summary"] == "Intro to JS"
        assert body["start"] == {"dateTime": "2025-06-01T10:00:00+00:00", "timeZone": "UTC"}
        assert body["end"] == {"dateTime": "2025-06-01T11:00:00+00:00", "timeZone": "UTC"}
        create_request = body["conferenceData"]["createRequest"]
        assert create_request["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
        assert create_request["requestId"].startswith("meet-")

    @pytest.mark.asyncio
    async def test_create_falls_back_to_first_entry_point_and_event_id(self, description):
        event = {
            "id": "evt999",
            "conferenceData": {"entryPoints": [{"uri": "https://meet.google.com/xyz"}]},
        }
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=event),
        ):
            credentials = await self._provider().create_meeting(description, "tok")
        assert credentials.meeting_url == "https://meet.google.com/xyz"
        assert credentials.meeting_id == "evt999"

    @pytest.mark.asyncio
    async def test_create_without_conference_data_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={"id": "evt123"}),
        ):
            with pytest.raises(ProviderError):
                await self._provider().create_meeting(description, "tok")

    @pytest.mark.asyncio
    async def test_create_unauthorized_raises(self, description):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(401, json={"error": "invalid_grant"}),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await self._provider().create_meeting(description, "tok")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_update_patches_calendar_event(self, description):
        credentials = MeetingCredentials(
            meeting_url="https://meet.google.com/abc",
            meeting_id="abc",
            provider_event_id="evt123",
        )
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=GOOGLE_EVENT),
        ) as mock_request:
            result = await self._provider().update_meeting(credentials, description, "tok")
        assert result == credentials
        assert mock_request.call_args.args == (
            "PATCH",
            f"{GOOGLE_API}/calendars/primary/events/evt123",
        )

    @pytest.mark.asyncio
    async def test_update_without_event_id_skips_call(self, description):
        credentials = MeetingCredentials(meeting_url="https://meet.google.com/abc", meeting_id="abc")
        with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_request:
            result = await self._provider().update_meeting(credentials, description, "tok")
        assert result == credentials
        mock_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_removes_calendar_event(self):
        credentials = MeetingCredentials(
            meeting_url="https://meet.google.com/abc",
            meeting_id="abc",
            provider_event_id="evt123",
        )
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(204),
        ) as mock_request:
            await self._provider().delete_meeting(credentials, "tok")
        assert mock_request.call_args.args == (
            "DELETE",
            f"{GOOGLE_API}/calendars/primary/events/evt123",
        )

    @pytest.mark.asyncio
    async def test_delete_without_event_id_skips_call(self):
        credentials = MeetingCredentials(meeting_url="https://meet.google.com/abc", meeting_id="abc")
        with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_request:
            await self._provider().delete_meeting(credentials, "tok")
        mock_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_recording_searches_drive(self):
        body = {"files": [{"id": "file-1", "name": "abc-defg-hij (2025-06-01)", "size": "5000"}]}
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json=body),
        ) as mock_request:
            recording = await self._provider().get_recording("abc-defg-hij", "tok")

        assert mock_request.call_args.args == ("GET", f"{DRIVE_API}/files")
        query = mock_request.call_args.kwargs["params"]["q"]
        assert "name contains 'abc-defg-hij'" in query
        assert "mimeType contains 'video'" in query
        assert recording.recording_url == "https://drive.google.com/file/d/file-1/view"
        assert recording.recording_id == "file-1"
        assert recording.recording_size == 5000

    @pytest.mark.asyncio
    async def test_get_recording_without_files_is_none(self):
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=_response(200, json={"files": []}),
        ):
            assert await self._provider().get_recording("abc-defg-hij", "tok") is None
