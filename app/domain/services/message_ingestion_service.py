"""Records WhatsApp messages relayed by the bridge."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.phone import normalize_phone_with_fallbacks
from app.core.timestamps import parse_timestamp, utcnow
from app.persistence.models.contact import Contact
from app.persistence.models.event import Event, EventType
from app.persistence.models.message import Message
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.message_repository import MessageRepository
from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    contact_id: str | None
    message_id: str | None
    phone_e164: str
    duplicate: bool = False
    contact_created: bool = False


class MessageIngestionService:
    """Stores inbound and outbound messages and links them to contacts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.message_repo = MessageRepository(session)

    def _normalize_phone(self, raw_phone: str) -> str | None:
        normalized = normalize_phone_with_fallbacks(raw_phone, settings.default_country_code)
        if not normalized:
            logger.warning(f"Could not normalize phone {raw_phone!r}; message will not be linked to a contact")
        return normalized

    async def _get_or_create_contact(self, phone_e164: str, source: str, now: datetime) -> tuple[Contact, bool]:
        contact = await self.contact_repo.get_by_phone(phone_e164)
        if contact:
            return contact, False

        # Messaging us (or being messaged by us) counts as opt-in
        contact = Contact(
            phone_e164=phone_e164,
            source=source,
            tags=[],
            opt_in_status=True,
            opt_in_timestamp=now,
            opt_in_source=source,
        )
        self.session.add(contact)
        await self.session.flush()
        logger.info(f"Created contact {contact.id} from {source} message")
        return contact, True

    async def record_inbound(
        self,
        raw_phone: str,
        body: str | None,
        provider_message_id: str | None = None,
        timestamp: str | None = None,
        full_name: str | None = None,
    ) -> IngestResult:
        """Store a message a contact sent us and mark the contact as recently active.

        A phone that cannot be normalized is kept on the message only; no
        contact is created for it.
        """
        now = utcnow()
        normalized = self._normalize_phone(raw_phone)
        phone = normalized or raw_phone.strip()

        if provider_message_id:
            existing = await self.message_repo.get_by_provider_id(provider_message_id)
            if existing:
                return IngestResult(existing.contact_id, existing.id, phone, duplicate=True)

        contact, created = None, False
        if normalized:
            contact, created = await self._get_or_create_contact(normalized, "whatsapp_inbound", now)
            if full_name and not contact.full_name:
                contact.full_name = full_name
            # Recency scoring reads updated_at
            contact.updated_at = now

        message = Message(
            contact_id=contact.id if contact else None,
            phone_e164=phone,
            direction="in",
            status="received",
            provider_message_id=provider_message_id,
            body=body,
            is_read=False,
            created_at=parse_timestamp(timestamp) or now,
        )
        self.session.add(message)
        if contact:
            self.session.add(
                Event(
                    contact_id=contact.id,
                    type=EventType.WHATSAPP_INBOUND,
                    meta={"provider_message_id": provider_message_id},
                )
            )
        await self.session.commit()
        return IngestResult(message.contact_id, message.id, phone, contact_created=created)

    async def record_outbound(
        self,
        raw_phone: str,
        body: str | None,
        provider_message_id: str | None = None,
        timestamp: str | None = None,
        template_name: str | None = None,
        status: str = "delivered",
    ) -> IngestResult:
        """Store a message the bridge reports as sent, once per provider id."""
        now = utcnow()
        normalized = self._normalize_phone(raw_phone)
        phone = normalized or raw_phone.strip()

        if provider_message_id:
            existing = await self.message_repo.get_by_provider_id(provider_message_id)
            if existing:
                logger.info(f"Outbound message {provider_message_id} already recorded")
                return IngestResult(existing.contact_id, existing.id, phone, duplicate=True)

        contact, created = None, False
        if normalized:
            contact, created = await self._get_or_create_contact(normalized, "whatsapp_outbound", now)

        message = Message(
            contact_id=contact.id if contact else None,
            phone_e164=phone,
            direction="out",
            status=status,
            template_name=template_name,
            provider_message_id=provider_message_id,
            body=body,
            is_read=True,
            created_at=parse_timestamp(timestamp) or now,
        )
        self.session.add(message)
        await self.session.commit()
        return IngestResult(message.contact_id, message.id, phone, contact_created=created)
