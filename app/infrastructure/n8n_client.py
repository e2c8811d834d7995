"""n8n workflow webhook client."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.exceptions import WebhookDeliveryError, WebhookNotConfiguredError
from app.persistence.models.app_setting import N8N_WEBHOOK_URL_KEY
from app.persistence.repositories.app_setting_repository import AppSettingRepository
from app.settings import settings

logger = logging.getLogger(__name__)

IMPORT_TRIGGER_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class WebhookConfig:
    url: str
    secret: str = ""


async def load_webhook_config(session: AsyncSession) -> WebhookConfig | None:
    """Resolve the webhook from the settings table, then from the environment.

    Returns:
        WebhookConfig, or None when no URL is configured anywhere
    """
    value = await AppSettingRepository(session).get_value(N8N_WEBHOOK_URL_KEY)
    if isinstance(value, dict) and value.get("url"):
        return WebhookConfig(url=value["url"], secret=value.get("secret") or "")
    if settings.n8n_webhook_url:
        return WebhookConfig(url=settings.n8n_webhook_url, secret=settings.n8n_webhook_secret)
    return None


class N8nClient:
    """Posts campaign and import payloads to the n8n workflow webhook."""

    def __init__(self, config: WebhookConfig | None, timeout: float | None = None) -> None:
        self.config = config
        self.timeout = timeout if timeout is not None else settings.n8n_timeout_seconds

    @classmethod
    async def from_session(cls, session: AsyncSession) -> "N8nClient":
        return cls(await load_webhook_config(session))

    @property
    def is_configured(self) -> bool:
        return self.config is not None and bool(self.config.url)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config and self.config.secret:
            headers["X-Webhook-Secret"] = self.config.secret
        return headers

    async def post(self, payload: dict[str, Any], timeout: float | None = None) -> Any:
        """Send one payload to the webhook.

        Returns:
            Decoded JSON response body, or the raw text if it is not JSON

        Raises:
            WebhookNotConfiguredError: No webhook URL
            WebhookDeliveryError: Network failure or non-2xx response
        """
        if not self.is_configured:
            raise WebhookNotConfiguredError()

        body = dict(payload)
        body.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                resp = await client.post(self.config.url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            details = _response_details(e.response)
            logger.error(f"n8n webhook returned {e.response.status_code}: {details}")
            raise WebhookDeliveryError(
                "Failed to trigger n8n webhook", details=details, status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"n8n webhook request failed: {e}")
            raise WebhookDeliveryError("Failed to trigger n8n webhook", details=str(e)) from e

        return _response_details(resp)

    async def send_campaign(self, payload: dict[str, Any]) -> Any:
        """Hand a campaign audience to the send workflow."""
        return await self.post({"campaign_type": "whatsapp", **payload})

    async def send_message(self, contact_id: str, phone_e164: str, message: dict[str, Any]) -> Any:
        """Ask the workflow to send one message to one contact."""
        return await self.post(
            {"action": "send_message", "contact_id": contact_id, "phone_e164": phone_e164, "message": message}
        )

    async def trigger_import(self, import_batch_id: str, contacts: list[dict[str, Any]]) -> Any:
        """Notify the workflow about newly imported contacts."""
        return await self.post(
            {"import_batch_id": import_batch_id, "contacts": contacts},
            timeout=IMPORT_TRIGGER_TIMEOUT_SECONDS,
        )


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
