"""Integration settings endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, HttpUrl
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.database import get_db
from app.persistence.models.app_setting import N8N_WEBHOOK_URL_KEY
from app.persistence.repositories.app_setting_repository import AppSettingRepository

router = APIRouter()


class WebhookSettingsResponse(BaseModel):
    """Stored webhook settings. The secret itself is never returned."""

    url: str
    has_secret: bool


class UpdateWebhookSettingsRequest(BaseModel):
    """Unset fields keep their stored value; clear_url removes the stored URL."""

    url: HttpUrl | None = None
    secret: str | None = None
    clear_url: bool = False


@router.get("/n8n-webhook", response_model=WebhookSettingsResponse)
async def get_webhook_settings(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WebhookSettingsResponse:
    """Get the n8n webhook stored in the settings table."""
    value = await AppSettingRepository(db).get_value(N8N_WEBHOOK_URL_KEY) or {}
    return WebhookSettingsResponse(url=value.get("url") or "", has_secret=bool(value.get("secret")))


@router.put("/n8n-webhook", response_model=WebhookSettingsResponse)
async def update_webhook_settings(
    request: UpdateWebhookSettingsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WebhookSettingsResponse:
    """Update the n8n webhook URL and/or secret."""
    repo = AppSettingRepository(db)
    current = dict(await repo.get_value(N8N_WEBHOOK_URL_KEY) or {})

    if request.clear_url:
        current["url"] = ""
    elif request.url is not None:
        current["url"] = str(request.url)
    if request.secret is not None:
        current["secret"] = request.secret

    await repo.set_value(N8N_WEBHOOK_URL_KEY, current)
    return WebhookSettingsResponse(url=current.get("url") or "", has_secret=bool(current.get("secret")))
