"""Meeting provider abstract base class and shared HTTP plumbing.

Every video conferencing backend (Google Meet, Zoom, Zoho) implements this
ABC. Strategies translate a SessionDescription into one provider HTTP call and
normalise the response; they never decide what a failure means. Every failure
mode (missing token, transport error, non-2xx status, malformed body) surfaces
as ProviderError and VideoConferencingService applies the failure policy.

No retries: each operation is attempted exactly once with its own
httpx.AsyncClient.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import httpx
import structlog

from src.app.live_sessions.schemas import (
    MeetingCredentials,
    ProviderSettings,
    RecordingInfo,
    SessionDescription,
    VideoProvider,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


# ── Errors ───────────────────────────────────────────────────────────────────


class ProviderError(Exception):
    """A provider call could not be completed.

    Args:
        provider: Provider the call was made against.
        message: Human-readable reason, safe to log.
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(
        self,
        provider: VideoProvider,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider.value}: {message}")


class ProviderConfigurationError(Exception):
    """The provider registry does not cover every VideoProvider member."""


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    error: ProviderError
    ok: bool = False


Result = Ok[T] | Err


# ── Base Strategy ────────────────────────────────────────────────────────────


class MeetingProvider(ABC):
    """Abstract interface for one video conferencing backend.

    Args:
        base_url: Provider API root (no trailing slash).
        timeout: Seconds allowed for each HTTP call.

    Methods:
        create_meeting: Create the remote meeting, return its credentials.
        update_meeting: Push title/time/description changes to the meeting.
        delete_meeting: Remove the remote meeting.
        get_recording: Fetch the first recording of a meeting, if any.
    """

    provider: VideoProvider

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @abstractmethod
    async def create_meeting(
        self, description: SessionDescription, token: str
    ) -> MeetingCredentials:
        """Create a meeting, return normalised credentials."""
        ...

    @abstractmethod
    async def update_meeting(
        self,
        credentials: MeetingCredentials,
        description: SessionDescription,
        token: str,
    ) -> MeetingCredentials:
        """Update the meeting to match description, return current credentials."""
        ...

    @abstractmethod
    async def delete_meeting(self, credentials: MeetingCredentials, token: str) -> None:
        """Delete the meeting."""
        ...

    @abstractmethod
    async def get_recording(self, meeting_id: str, token: str) -> RecordingInfo | None:
        """Return the first recording of the meeting, or None if none exists."""
        ...

    # ── Helpers ──────────────────────────────────────────────────────────────

    def require_token(self, settings: ProviderSettings | None) -> str:
        """Return the access token or raise ProviderError if it is missing."""
        if settings is None or not settings.access_token:
            raise ProviderError(self.provider, "No access token configured")
        return settings.access_token

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _client(self, token: str) -> httpx.AsyncClient:
        """Create a new httpx client for one call."""
        return httpx.AsyncClient(
            headers=self._headers(token),
            timeout=self._timeout,
        )

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        base_url: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request; transport errors and non-2xx statuses raise ProviderError."""
        url = f"{base_url or self._base_url}{path}"
        try:
            async with self._client(token) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(self.provider, f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise ProviderError(
                self.provider,
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug(
            "video_provider.request",
            provider=self.provider.value,
            method=method,
            path=path,
            status=response.status_code,
        )
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body or raise ProviderError."""
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(self.provider, "Response body is not JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError(self.provider, "Response body is not a JSON object")
        return data

    def _credentials(self, **fields: Any) -> MeetingCredentials:
        """Build credentials, rejecting responses without a join URL or id."""
        if not fields.get("meeting_url") or not fields.get("meeting_id"):
            raise ProviderError(self.provider, "Response is missing the join URL or meeting id")
        fields["meeting_id"] = str(fields["meeting_id"])
        return MeetingCredentials(**fields)


# ── Shared Helpers ───────────────────────────────────────────────────────────


def generate_meeting_password() -> str:
    """Eight uppercase hex characters from a CSPRNG."""
    return secrets.token_hex(4).upper()


def isoformat_utc(value: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with a Z suffix; naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
