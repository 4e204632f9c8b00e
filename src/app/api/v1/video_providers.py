"""Video provider settings endpoints.

Mentors store one OAuth credential set per provider. Tokens are write-only:
responses report whether a token is present, never the token itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.app.api.deps import get_live_session_repository, require_mentor
from src.app.core.security import CurrentUser
from src.app.live_sessions.schemas import (
    VideoProvider,
    VideoProviderSetting,
    VideoProviderSettingCreate,
)

router = APIRouter(prefix="/video-providers", tags=["video-providers"])


class VideoProviderSettingResponse(BaseModel):
    id: int
    provider: VideoProvider
    is_default: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    has_access_token: bool = False
    has_refresh_token: bool = False
    token_expires_at: datetime | None = None
    updated_at: datetime | None = None


def _to_response(setting: VideoProviderSetting) -> VideoProviderSettingResponse:
    return VideoProviderSettingResponse(
        id=setting.id,
        provider=setting.provider,
        is_default=setting.is_default,
        settings=setting.settings,
        is_active=setting.is_active,
        has_access_token=bool(setting.access_token),
        has_refresh_token=bool(setting.refresh_token),
        token_expires_at=setting.token_expires_at,
        updated_at=setting.updated_at or setting.created_at,
    )


@router.get("/settings", response_model=list[VideoProviderSettingResponse])
async def list_provider_settings(
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> list[VideoProviderSettingResponse]:
    settings = await repo.list_video_provider_settings(user.id)
    return [_to_response(s) for s in settings]


@router.post("/settings", response_model=VideoProviderSettingResponse)
async def save_provider_settings(
    body: VideoProviderSettingCreate,
    user: CurrentUser = Depends(require_mentor),
    repo: Any = Depends(get_live_session_repository),
) -> VideoProviderSettingResponse:
    setting = await repo.save_video_provider_settings(user.id, body)
    return _to_response(setting)
