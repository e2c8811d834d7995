"""WhatsApp account protection.

Keeps outbound volume inside limits that avoid the WhatsApp account being
restricted: global daily and hourly quotas, per-contact frequency limits,
spacing between sends, and the 24-hour free-form messaging window.

Limits come from an explicit ``ProtectionConfig`` handed to the service.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timestamps import utcnow
from app.persistence.repositories.message_repository import MessageRepository
from app.settings import Settings, settings

logger = logging.getLogger(__name__)

# Per-contact daily limit at or above this value means "no limit"
UNLIMITED_PER_CONTACT = 999999


@dataclass(frozen=True)
class ProtectionConfig:
    """Send limits for the WhatsApp account."""

    max_messages_per_day: int = 1000
    max_messages_per_hour: int = 100
    min_hours_between_messages: float = 0
    max_messages_per_contact_per_day: int = UNLIMITED_PER_CONTACT
    min_delay_between_messages_ms: int = 2000
    enforce_24_hour_window: bool = False

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "ProtectionConfig":
        """Build the config from application settings."""
        source = source or settings
        return cls(
            max_messages_per_day=source.whatsapp_max_messages_per_day,
            max_messages_per_hour=source.whatsapp_max_messages_per_hour,
            min_hours_between_messages=source.whatsapp_min_hours_between_messages,
            max_messages_per_contact_per_day=source.whatsapp_max_messages_per_contact_per_day,
            min_delay_between_messages_ms=source.whatsapp_min_delay_between_messages_ms,
            enforce_24_hour_window=source.whatsapp_enforce_24_hour_window,
        )


@dataclass
class QuotaStatus:
    allowed: bool
    sent: int
    limit: int
    remaining: int
    reset_at: datetime


@dataclass
class ContactFrequencyStatus:
    allowed: bool
    last_message_at: datetime | None
    hours_since_last_message: float | None
    messages_today: int
    reason: str | None = None


@dataclass
class MessagingWindowStatus:
    in_window: bool
    last_inbound_at: datetime | None
    hours_since_inbound: float | None
    can_send_template: bool = True
    can_send_free_form: bool = False


@dataclass
class SendCheck:
    allowed: bool
    reasons: list[str] = field(default_factory=list)
    daily_quota: QuotaStatus | None = None
    hourly_quota: QuotaStatus | None = None
    contact_frequency: ContactFrequencyStatus | None = None
    window: MessagingWindowStatus | None = None


@dataclass(frozen=True)
class ProviderErrorAdvice:
    should_backoff: bool
    backoff_seconds: int
    is_rate_limit: bool
    is_ban_warning: bool
    message: str


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class WhatsAppProtectionService:
    """Checks outbound sends against the configured limits."""

    def __init__(self, session: AsyncSession, config: ProtectionConfig | None = None) -> None:
        self.session = session
        self.config = config or ProtectionConfig.from_settings()
        self.message_repo = MessageRepository(session)

    async def check_daily_quota(self, now: datetime | None = None) -> QuotaStatus:
        """Outbound messages sent today against the daily limit."""
        now = now or utcnow()
        start = _start_of_day(now)
        end = start + timedelta(days=1)
        sent = await self.message_repo.count_outbound(start, end)
        return self._quota(sent, self.config.max_messages_per_day, end)

    async def check_hourly_quota(self, now: datetime | None = None) -> QuotaStatus:
        """Outbound messages sent this clock hour against the hourly limit."""
        now = now or utcnow()
        start = now.replace(minute=0, second=0, microsecond=0)
        end = start + timedelta(hours=1)
        sent = await self.message_repo.count_outbound(start, end)
        return self._quota(sent, self.config.max_messages_per_hour, end)

    @staticmethod
    def _quota(sent: int, limit: int, reset_at: datetime) -> QuotaStatus:
        remaining = limit - sent
        return QuotaStatus(
            allowed=remaining > 0,
            sent=sent,
            limit=limit,
            remaining=max(0, remaining),
            reset_at=reset_at,
        )

    async def check_contact_frequency(
        self, contact_id: str, now: datetime | None = None
    ) -> ContactFrequencyStatus:
        """Per-contact daily cap and minimum spacing between messages."""
        now = now or utcnow()
        last_message_at = await self.message_repo.last_created_at(contact_id, "out")
        messages_today = await self.message_repo.count_outbound(_start_of_day(now), contact_id=contact_id)

        hours_since = None
        if last_message_at is not None:
            hours_since = (now - last_message_at).total_seconds() / 3600

        status = ContactFrequencyStatus(
            allowed=True,
            last_message_at=last_message_at,
            hours_since_last_message=hours_since,
            messages_today=messages_today,
        )

        daily_cap = self.config.max_messages_per_contact_per_day
        if daily_cap < UNLIMITED_PER_CONTACT and messages_today >= daily_cap:
            status.allowed = False
            status.reason = f"Maximum {daily_cap} messages per contact per day exceeded"
            return status

        min_hours = self.config.min_hours_between_messages
        if min_hours > 0 and hours_since is not None and hours_since < min_hours:
            status.allowed = False
            status.reason = (
                f"Minimum {min_hours} hours between messages not met "
                f"({hours_since:.1f} hours since last message)"
            )
        return status

    async def check_messaging_window(
        self, contact_id: str, now: datetime | None = None
    ) -> MessagingWindowStatus:
        """Whether the contact messaged us in the last 24 hours.

        Templates can always be sent; free-form text only inside the window.
        """
        now = now or utcnow()
        last_inbound_at = await self.message_repo.last_created_at(
            contact_id, "in", since=now - timedelta(hours=24)
        )
        in_window = last_inbound_at is not None
        hours_since = (now - last_inbound_at).total_seconds() / 3600 if in_window else None
        return MessagingWindowStatus(
            in_window=in_window,
            last_inbound_at=last_inbound_at,
            hours_since_inbound=hours_since,
            can_send_template=True,
            can_send_free_form=in_window,
        )

    async def can_send_message(
        self, contact_id: str, is_template: bool = True, now: datetime | None = None
    ) -> SendCheck:
        """Run every protection check for one outbound message."""
        now = now or utcnow()
        reasons = []

        daily = await self.check_daily_quota(now)
        if not daily.allowed:
            reasons.append(f"Daily quota exceeded ({daily.sent}/{daily.limit})")

        hourly = await self.check_hourly_quota(now)
        if not hourly.allowed:
            reasons.append(f"Hourly quota exceeded ({hourly.sent}/{hourly.limit})")

        frequency = await self.check_contact_frequency(contact_id, now)
        if not frequency.allowed:
            reasons.append(frequency.reason or "Contact frequency limit exceeded")

        window = await self.check_messaging_window(contact_id, now)
        if self.config.enforce_24_hour_window and not is_template and not window.can_send_free_form:
            reasons.append("Free-form messages only allowed within 24-hour window")

        return SendCheck(
            allowed=not reasons,
            reasons=reasons,
            daily_quota=daily,
            hourly_quota=hourly,
            contact_frequency=frequency,
            window=window,
        )

    def calculate_message_delay(self, last_sent_at: datetime | None, now: datetime | None = None) -> int:
        """Milliseconds to wait before the next send."""
        required = self.config.min_delay_between_messages_ms
        if last_sent_at is None:
            return required

        now = now or utcnow()
        elapsed_ms = (now - last_sent_at).total_seconds() * 1000
        if elapsed_ms >= required:
            return 0
        return int(required - elapsed_ms)

    async def next_send_delay(self, now: datetime | None = None) -> int:
        """Milliseconds to wait before the first message of a new batch."""
        return self.calculate_message_delay(await self.message_repo.last_outbound_at(), now)


def classify_provider_error(error: Any) -> ProviderErrorAdvice:
    """Decide how to back off after a WhatsApp provider error.

    Accepts an exception or a dict with ``message``, ``code`` and ``status``.
    """
    if isinstance(error, dict):
        message = str(error.get("message") or error)
        code = error.get("code") or (error.get("error") or {}).get("code")
        status = error.get("status") or error.get("status_code")
    else:
        message = str(error)
        code = getattr(error, "code", None)
        status = getattr(error, "status_code", None)
        response = getattr(error, "response", None)
        if status is None and response is not None:
            status = getattr(response, "status_code", None)

    lowered = message.lower()

    if status == 429 or code == "RATE_LIMIT" or "rate limit" in lowered:
        return ProviderErrorAdvice(True, 60, True, False, "Rate limit exceeded - backing off")

    if code in ("ACCOUNT_BANNED", "ACCOUNT_RESTRICTED") or any(
        word in lowered for word in ("banned", "restricted", "suspended")
    ):
        return ProviderErrorAdvice(True, 3600, False, True, "Account ban warning - immediate backoff required")

    if status == 400 and ("template" in lowered or code == "INVALID_TEMPLATE"):
        return ProviderErrorAdvice(False, 0, False, False, "Template validation error")

    if isinstance(status, int) and status >= 500:
        return ProviderErrorAdvice(True, 30, False, False, "Server error - backing off")

    return ProviderErrorAdvice(False, 0, False, False, "Unknown error")
