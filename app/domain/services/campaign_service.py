"""Campaign send orchestration.

Resolves the audience (explicit selection or the filter pipeline), applies
the opt-in gate and WhatsApp protection limits, tags recent buyers, hands the
audience to the n8n send workflow and records one outbound event per contact.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timestamps import Parsed, classify_timestamp, utcnow
from app.domain.exceptions import QuotaExceededError
from app.domain.services.campaign_filter_service import (
    CampaignFilterService,
    CampaignFilterSpec,
    select_sendable,
)
from app.domain.services.whatsapp_protection_service import (
    ProtectionConfig,
    WhatsAppProtectionService,
)
from app.infrastructure.n8n_client import N8nClient
from app.persistence.models.contact import Contact
from app.persistence.models.event import EventType
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.event_repository import EventRepository
from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class CampaignRequest:
    """What to send and to whom."""

    segment: str | None = None
    template_name: str | None = None
    template_language: str | None = None
    template_variables: list[str] | None = None
    manual_message: str | None = None
    selected_contact_ids: list[str] | None = None
    filters: CampaignFilterSpec = field(default_factory=CampaignFilterSpec)

    def validate(self) -> None:
        if not (self.template_name or self.manual_message):
            raise ValueError("Either template_name or manual_message must be provided")
        if not (self.selected_contact_ids or self.segment):
            raise ValueError("Either selected_contact_ids or segment must be provided")


@dataclass
class CampaignResult:
    sent: int
    matched_count: int
    sendable_count: int
    contact_ids: list[str]
    campaign_id: str | None = None
    message: str | None = None
    response: Any = None


def is_recent_buyer(contact: Contact, now: datetime, days: int | None = None) -> bool:
    """True when the contact's purchase date parses and is within N days."""
    if days is None:
        days = settings.hot_recent_buyer_exclusion_days
    purchase = classify_timestamp(contact.last_purchase_at)
    return isinstance(purchase, Parsed) and purchase.value >= now - timedelta(days=days)


class CampaignService:
    """Triggers WhatsApp campaigns through the n8n workflow."""

    def __init__(
        self,
        session: AsyncSession,
        n8n_client: N8nClient | None = None,
        protection_config: ProtectionConfig | None = None,
    ) -> None:
        self.session = session
        self.n8n_client = n8n_client
        self.filter_service = CampaignFilterService(session)
        self.protection = WhatsAppProtectionService(session, protection_config)
        self.contact_repo = ContactRepository(session)
        self.event_repo = EventRepository(session)

    async def resolve_audience(self, request: CampaignRequest) -> list[str]:
        """Selected ids take precedence over segment filters."""
        if request.selected_contact_ids:
            return list(dict.fromkeys(request.selected_contact_ids))
        return await self.filter_service.apply_campaign_filters(request.segment, request.filters)

    async def trigger(self, request: CampaignRequest) -> CampaignResult:
        """Send a campaign.

        Raises:
            ValueError: Neither template nor message, or no audience source
            QuotaExceededError: Daily or hourly quota exhausted
            WebhookNotConfiguredError: No n8n webhook configured
            WebhookDeliveryError: The webhook call failed
        """
        request.validate()
        now = utcnow()

        matched_ids = await self.resolve_audience(request)
        if not matched_ids:
            message = "No contacts selected" if request.selected_contact_ids else "No contacts match the filters"
            return CampaignResult(sent=0, matched_count=0, sendable_count=0, contact_ids=[], message=message)

        contacts = select_sendable(await self.contact_repo.list_by_ids(matched_ids))
        if not contacts:
            return CampaignResult(
                sent=0,
                matched_count=len(matched_ids),
                sendable_count=0,
                contact_ids=[],
                message="No opted-in contacts after filters",
            )

        daily = await self.protection.check_daily_quota(now)
        if not daily.allowed:
            raise QuotaExceededError("daily", daily.sent, daily.limit, daily.reset_at)
        hourly = await self.protection.check_hourly_quota(now)
        if not hourly.allowed:
            raise QuotaExceededError("hourly", hourly.sent, hourly.limit, hourly.reset_at)

        is_template = bool(request.template_name)
        eligible = []
        for contact in contacts:
            check = await self.protection.can_send_message(contact.id, is_template=is_template, now=now)
            if not check.allowed:
                logger.info(f"Skipping contact {contact.id} due to protection limits: {check.reasons}")
                continue
            eligible.append(contact)

        if not eligible:
            return CampaignResult(
                sent=0,
                matched_count=len(matched_ids),
                sendable_count=0,
                contact_ids=[],
                message="No eligible contacts after compliance checks",
            )

        client = self.n8n_client or await N8nClient.from_session(self.session)

        recent_buyers = [c.id for c in eligible if is_recent_buyer(c, now)]
        if recent_buyers:
            tagged = await self.contact_repo.add_tag(recent_buyers, settings.recent_buyer_tag)
            logger.info(f"Tagged {tagged} contacts as {settings.recent_buyer_tag}")

        payload = self._payload(request, eligible)
        # Pacing hints for the send workflow
        payload["send_delay_ms"] = await self.protection.next_send_delay(now)
        payload["delay_between_messages_ms"] = self.protection.config.min_delay_between_messages_ms
        response = await client.send_campaign(payload)

        campaign_id = str(uuid.uuid4())
        eligible_ids = [c.id for c in eligible]
        await self.event_repo.create_many(
            eligible_ids,
            EventType.WHATSAPP_OUTBOUND,
            self._event_meta(request, campaign_id),
        )

        logger.info(
            f"Campaign {campaign_id} sent to {len(eligible_ids)} contacts "
            f"(matched={len(matched_ids)}, segment={request.segment or 'selected'})"
        )
        return CampaignResult(
            sent=len(eligible_ids),
            matched_count=len(matched_ids),
            sendable_count=len(eligible_ids),
            contact_ids=eligible_ids,
            campaign_id=campaign_id,
            response=response,
        )

    @staticmethod
    def _payload(request: CampaignRequest, contacts: list[Contact]) -> dict[str, Any]:
        payload = {
            "segment": request.segment,
            "template_name": request.template_name,
            "template_language": request.template_language,
            "template_variables": request.template_variables,
            "manual_message": request.manual_message,
            "contacts": [
                {"id": c.id, "phone_e164": c.phone_e164, "full_name": c.full_name}
                for c in contacts
            ],
        }
        return {key: value for key, value in payload.items() if value is not None}

    @staticmethod
    def _event_meta(request: CampaignRequest, campaign_id: str) -> dict[str, Any]:
        meta = {
            "campaign_id": campaign_id,
            "segment": request.segment or "selected",
            "template_name": request.template_name,
            "template_language": request.template_language,
            "template_variables": request.template_variables,
            "manual_message": request.manual_message,
            "filters": request.filters.model_dump(exclude_none=True),
            "selected_contact_ids": request.selected_contact_ids,
        }
        return {key: value for key, value in meta.items() if value is not None}
