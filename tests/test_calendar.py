"""Tests for calendar export: deep links, Apple data URI, .ics document, CalendarEvent.

All functions are pure, so every assertion is on exact strings.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.app.live_sessions.calendar import (
    APPLE_DATA_URI_PREFIX,
    build_session_ics,
    create_calendar_event,
    encode_uri_component,
    escape_ics_text,
    format_calendar_timestamp,
    generate_calendar_urls,
    session_details,
)
from src.app.live_sessions.schemas import CalendarProvider, LiveSession


def _session(**overrides) -> LiveSession:
    fields = dict(
        id=7,
        course_id=3,
        mentor_id="mentor-1",
        title="Intro to JS",
        description="Variables and functions",
        start_time=datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc),
        duration=60,
        meeting_url="https://zoom.us/j/123456789",
        meeting_id="123456789",
    )
    fields.update(overrides)
    return LiveSession(**fields)


ENCODED_DETAILS = (
    "Variables%20and%20functions%0A%0A"
    "Join%20meeting%3A%20https%3A%2F%2Fzoom.us%2Fj%2F123456789"
)


# ── Timestamp Formatting ─────────────────────────────────────────────────────


class TestFormatCalendarTimestamp:
    def test_aware_utc(self):
        value = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)
        assert format_calendar_timestamp(value) == "20250601T100000Z"

    def test_naive_is_treated_as_utc(self):
        assert format_calendar_timestamp(datetime(2025, 6, 1, 10, 0)) == "20250601T100000Z"

    def test_offset_is_converted_to_utc(self):
        value = datetime(2025, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_calendar_timestamp(value) == "20250601T100000Z"

    def test_iso_string_with_z(self):
        assert format_calendar_timestamp("2025-06-01T10:00:00Z") == "20250601T100000Z"

    def test_subseconds_are_dropped(self):
        value = datetime(2025, 6, 1, 10, 0, 5, 987654, tzinfo=timezone.utc)
        assert format_calendar_timestamp(value) == "20250601T100005Z"


# ── Encoding ─────────────────────────────────────────────────────────────────


class TestEncoding:
    def test_encode_uri_component_reserved_characters(self):
        assert encode_uri_component("a b&c=d/e:f") == "a%20b%26c%3Dd%2Fe%3Af"

    def test_encode_uri_component_keeps_unreserved_marks(self):
        assert encode_uri_component("-_.!~*'()") == "-_.!~*'()"

    def test_encode_uri_component_utf8(self):
        assert encode_uri_component("café") == "caf%C3%A9"

    def test_escape_ics_text(self):
        assert escape_ics_text("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"

    def test_escape_ics_text_crlf(self):
        assert escape_ics_text("line1\r\nline2") == "line1\\nline2"


# ── Calendar URLs ────────────────────────────────────────────────────────────


class TestGenerateCalendarUrls:
    def test_google_url(self):
        urls = generate_calendar_urls(_session())
        assert urls.google == (
            "https://calendar.google.com/calendar/render?action=TEMPLATE"
            "&text=Intro%20to%20JS"
            "&dates=20250601T100000Z/20250601T110000Z"
            f"&details={ENCODED_DETAILS}"
        )

    def test_outlook_url(self):
        urls = generate_calendar_urls(_session())
        assert urls.outlook == (
            "https://outlook.live.com/calendar/0/deeplink/compose"
            "?subject=Intro%20to%20JS"
            "&startdt=20250601T100000Z&enddt=20250601T110000Z"
            f"&body={ENCODED_DETAILS}"
        )

    def test_apple_data_uri(self):
        urls = generate_calendar_urls(_session())
        assert urls.apple.startswith(APPLE_DATA_URI_PREFIX)
        lines = urls.apple[len(APPLE_DATA_URI_PREFIX):].split("\n")
        assert lines == [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "BEGIN:VEVENT",
            "DTSTART:20250601T100000Z",
            "DTEND:20250601T110000Z",
            "SUMMARY:Intro to JS",
            "DESCRIPTION:Variables and functions\\n\\nJoin meeting: https://zoom.us/j/123456789",
            "END:VEVENT",
            "END:VCALENDAR",
        ]

    def test_output_is_deterministic(self):
        assert generate_calendar_urls(_session()) == generate_calendar_urls(_session())

    def test_missing_end_time_uses_duration(self):
        urls = generate_calendar_urls(_session(end_time=None, duration=90))
        assert "dates=20250601T100000Z/20250601T113000Z" in urls.google
        assert "enddt=20250601T113000Z" in urls.outlook

    def test_missing_description_and_url(self):
        session = _session(description=None, meeting_url=None, meeting_id=None)
        assert session_details(session) == "\n\nJoin meeting: "
        urls = generate_calendar_urls(session)
        assert urls.google.endswith("&details=%0A%0AJoin%20meeting%3A%20")

    def test_title_is_escaped_in_apple_summary(self):
        urls = generate_calendar_urls(_session(title="Intro, Part 1; JS"))
        assert "SUMMARY:Intro\\, Part 1\\; JS" in urls.apple
        assert "text=Intro%2C%20Part%201%3B%20JS" in urls.google


# ── ICS Download ─────────────────────────────────────────────────────────────


class TestBuildSessionIcs:
    NOW = datetime(2025, 5, 20, 8, 0, tzinfo=timezone.utc)

    def test_document_lines(self):
        ics = build_session_ics(_session(), now=self.NOW)
        assert ics.endswith("\r\n")
        lines = ics.split("\r\n")[:-1]
        assert lines[0] == "BEGIN:VCALENDAR"
        assert lines[-1] == "END:VCALENDAR"
        assert "METHOD:REQUEST" in lines
        assert "UID:live-session-7@live-sessions" in lines
        assert "DTSTAMP:20250520T080000Z" in lines
        assert "DTSTART:20250601T100000Z" in lines
        assert "DTEND:20250601T110000Z" in lines
        assert "SUMMARY:Intro to JS" in lines
        assert "LOCATION:https://zoom.us/j/123456789" in lines
        assert "URL:https://zoom.us/j/123456789" in lines

    def test_uses_crlf_only(self):
        ics = build_session_ics(_session(), now=self.NOW)
        assert "\n" not in ics.replace("\r\n", "")

    def test_same_input_same_document(self):
        assert build_session_ics(_session(), now=self.NOW) == build_session_ics(
            _session(), now=self.NOW
        )

    def test_no_location_without_meeting_url(self):
        ics = build_session_ics(_session(meeting_url=None, meeting_id=None), now=self.NOW)
        assert "LOCATION:" not in ics
        assert "\r\nURL:" not in ics


# ── Calendar Event View ──────────────────────────────────────────────────────


class TestCreateCalendarEvent:
    @pytest.mark.parametrize("provider", list(CalendarProvider))
    def test_event_shape(self, provider):
        event = create_calendar_event(_session(), provider)
        assert event.id == "session-7"
        assert event.title == "Intro to JS"
        assert event.start_time == "2025-06-01T10:00:00Z"
        assert event.end_time == "2025-06-01T11:00:00Z"
        assert event.timezone == "UTC"
        assert event.meeting_url == "https://zoom.us/j/123456789"
        assert event.description.endswith("Join meeting: https://zoom.us/j/123456789")
        assert event.provider == provider

    def test_missing_meeting_url_is_empty_string(self):
        event = create_calendar_event(
            _session(meeting_url=None, meeting_id=None), CalendarProvider.APPLE
        )
        assert event.meeting_url == ""

    def test_session_timezone_is_kept(self):
        event = create_calendar_event(
            _session(timezone="America/New_York"), CalendarProvider.OUTLOOK
        )
        assert event.timezone == "America/New_York"
        assert event.start_time == "2025-06-01T10:00:00Z"
