"""Calendar export for live sessions.

Pure functions: Google Calendar and Outlook.com deep links, an inline
iCalendar data URI for Apple Calendar, a downloadable .ics document, and the
CalendarEvent view. Identical input always yields byte-identical output
(build_session_ics takes DTSTAMP as an argument for the same reason).

All timestamps are emitted in UTC as YYYYMMDDTHHMMSSZ. Naive datetimes are
treated as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol
from urllib.parse import quote

from src.app.live_sessions.schemas import (
    CalendarEvent,
    CalendarProvider,
    CalendarUrls,
)

CALENDAR_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
OUTLOOK_CALENDAR_URL = "https://outlook.live.com/calendar/0/deeplink/compose"
APPLE_DATA_URI_PREFIX = "data:text/calendar;charset=utf8,"
ICS_PRODID = "-//Live Sessions//EN"

# Characters JavaScript's encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class CalendarSession(Protocol):
    """Anything with the fields needed to put a session in a calendar."""

    id: int
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime | None
    duration: int
    timezone: str
    meeting_url: str | None


def _to_utc(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_calendar_timestamp(value: datetime | str) -> str:
    """Format as UTC YYYYMMDDTHHMMSSZ, dropping sub-second precision."""
    return _to_utc(value).strftime(CALENDAR_TIMESTAMP_FORMAT)


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def escape_ics_text(value: str) -> str:
    """Escape a TEXT property value (RFC 5545 section 3.3.11)."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _session_window(session: CalendarSession) -> tuple[datetime, datetime]:
    start = _to_utc(session.start_time)
    if session.end_time is not None:
        return start, _to_utc(session.end_time)
    return start, start + timedelta(minutes=session.duration)


def session_details(session: CalendarSession) -> str:
    """Event body shared by every calendar target."""
    return f"{session.description or ''}\n\nJoin meeting: {session.meeting_url or ''}"


def generate_calendar_urls(session: CalendarSession) -> CalendarUrls:
    start, end = _session_window(session)
    start_ts = format_calendar_timestamp(start)
    end_ts = format_calendar_timestamp(end)
    details = session_details(session)
    title = encode_uri_component(session.title)
    body = encode_uri_component(details)

    google = (
        f"{GOOGLE_CALENDAR_URL}?action=TEMPLATE&text={title}"
        f"&dates={start_ts}/{end_ts}&details={body}"
    )
    outlook = (
        f"{OUTLOOK_CALENDAR_URL}?subject={title}"
        f"&startdt={start_ts}&enddt={end_ts}&body={body}"
    )
    apple_lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        f"DTSTART:{start_ts}",
        f"DTEND:{end_ts}",
        f"SUMMARY:{escape_ics_text(session.title)}",
        f"DESCRIPTION:{escape_ics_text(details)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return CalendarUrls(
        google=google,
        outlook=outlook,
        apple=APPLE_DATA_URI_PREFIX + "\n".join(apple_lines),
    )


def build_session_ics(session: CalendarSession, now: datetime | None = None) -> str:
    """Build a downloadable iCalendar document with CRLF line endings.

    Args:
        session: Session to export.
        now: DTSTAMP value; defaults to the current time.
    """
    start, end = _session_window(session)
    stamp = format_calendar_timestamp(now or datetime.now(timezone.utc))
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:live-session-{session.id}@live-sessions",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{format_calendar_timestamp(start)}",
        f"DTEND:{format_calendar_timestamp(end)}",
        f"SUMMARY:{escape_ics_text(session.title)}",
        f"DESCRIPTION:{escape_ics_text(session_details(session))}",
    ]
    if session.meeting_url:
        lines.append(f"LOCATION:{escape_ics_text(session.meeting_url)}")
        lines.append(f"URL:{session.meeting_url}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


def create_calendar_event(
    session: CalendarSession, provider: CalendarProvider
) -> CalendarEvent:
    """Calendar view of a session; the shape does not depend on provider."""
    start, end = _session_window(session)
    return CalendarEvent(
        id=f"session-{session.id}",
        title=session.title,
        start_time=start.isoformat().replace("+00:00", "Z"),
        end_time=end.isoformat().replace("+00:00", "Z"),
        timezone=session.timezone or "UTC",
        meeting_url=session.meeting_url or "",
        description=session_details(session),
        provider=provider,
    )
