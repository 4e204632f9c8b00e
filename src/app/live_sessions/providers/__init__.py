"""Video conferencing provider strategies.

One MeetingProvider per VideoProvider member. VideoConferencingService holds
them in a closed registry and owns the failure policy; strategies only raise
ProviderError.
"""

from src.app.live_sessions.providers.base import (
    Err,
    MeetingProvider,
    Ok,
    ProviderConfigurationError,
    ProviderError,
    Result,
)
from src.app.live_sessions.providers.google_meet import GoogleMeetProvider
from src.app.live_sessions.providers.zoho import ZohoProvider
from src.app.live_sessions.providers.zoom import ZoomProvider

__all__ = [
    "Err",
    "GoogleMeetProvider",
    "MeetingProvider",
    "Ok",
    "ProviderConfigurationError",
    "ProviderError",
    "Result",
    "ZohoProvider",
    "ZoomProvider",
]
