"""Shared test fixtures.

Provides:
- Sample session descriptions and persisted sessions
- A VideoConferencingService wired to test base URLs and a mock logger
- Provider credentials for the Zoom strategy

No test needs a database or network: providers are exercised by patching
httpx.AsyncClient.request and the API tests use an in-memory repository.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.app.live_sessions.conferencing import VideoConferencingService
from src.app.live_sessions.providers import GoogleMeetProvider, ZohoProvider, ZoomProvider
from src.app.live_sessions.schemas import (
    LiveSession,
    ProviderSettings,
    SessionDescription,
    VideoProvider,
)

GOOGLE_API = "https://calendar.test/v3"
DRIVE_API = "https://drive.test/v3"
ZOOM_API = "https://zoom.test/v2"
ZOHO_API = "https://zoho.test/api/v2"
FALLBACK_BASE_URL = "https://rooms.test/room"


def _make_providers() -> dict[VideoProvider, Any]:
    return {
        VideoProvider.GOOGLE_MEET: GoogleMeetProvider(GOOGLE_API, DRIVE_API, timeout=5.0),
        VideoProvider.ZOOM: ZoomProvider(ZOOM_API, timeout=5.0),
        VideoProvider.ZOHO: ZohoProvider(ZOHO_API, timeout=5.0),
    }


@pytest.fixture
def mock_logger() -> MagicMock:
    return MagicMock()


@pytest.fixture
def conferencing(mock_logger) -> VideoConferencingService:
    return VideoConferencingService(
        _make_providers(),
        fallback_base_url=FALLBACK_BASE_URL,
        logger=mock_logger,
    )


@pytest.fixture
def description() -> SessionDescription:
    return SessionDescription(
        title="Intro to JS",
        description="Variables and functions",
        start_time=datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc),
        duration=60,
        timezone="UTC",
        provider=VideoProvider.ZOOM,
    )


@pytest.fixture
def zoom_settings() -> ProviderSettings:
    return ProviderSettings(provider=VideoProvider.ZOOM, access_token="zoom-token")


@pytest.fixture
def live_session() -> LiveSession:
    return LiveSession(
        id=7,
        course_id=3,
        mentor_id="mentor-1",
        title="Intro to JS",
        description="Variables and functions",
        start_time=datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc),
        duration=60,
        provider=VideoProvider.ZOOM,
        meeting_url="https://zoom.us/j/123456789",
        meeting_id="123456789",
        meeting_password="ABCD1234",
        host_key="998877",
        host_url="https://zoom.us/s/123456789?zak=host",
    )
