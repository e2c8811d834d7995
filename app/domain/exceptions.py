"""Domain errors raised by campaign and webhook operations."""

from datetime import datetime
from typing import Any


class CampaignError(Exception):
    """Base class for campaign send failures."""


class WebhookNotConfiguredError(CampaignError):
    """No n8n webhook URL is configured."""

    def __init__(self) -> None:
        super().__init__("n8n webhook URL not configured")


class QuotaExceededError(CampaignError):
    """A global daily or hourly send quota is exhausted."""

    def __init__(self, period: str, sent: int, limit: int, reset_at: datetime) -> None:
        super().__init__(f"{period.capitalize()} message quota exceeded")
        self.period = period
        self.sent = sent
        self.limit = limit
        self.remaining = max(0, limit - sent)
        self.reset_at = reset_at


class WebhookDeliveryError(CampaignError):
    """The n8n webhook call failed."""

    def __init__(self, message: str, details: Any = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.details = details
        self.status_code = status_code
