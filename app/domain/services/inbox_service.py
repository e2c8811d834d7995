"""Inbox service for WhatsApp conversations."""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timestamps import utcnow
from app.domain.exceptions import CampaignError
from app.infrastructure.n8n_client import N8nClient
from app.persistence.models.contact import Contact
from app.persistence.models.event import Event, EventType
from app.persistence.models.message import Message
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.message_repository import MessageRepository

logger = logging.getLogger(__name__)

# Messages scanned per requested conversation when grouping threads
CONVERSATION_SCAN_FACTOR = 10


@dataclass
class Conversation:
    """One thread: a contact, or a bare phone number for unlinked messages."""

    conversation_key: str
    contact: Contact | None
    phone_e164: str | None
    latest_message: Message
    unread_count: int = 0


@dataclass
class SendMessageRequest:
    body: str
    template_name: str | None = None
    template_language: str | None = None
    template_variables: list[str] | None = None


class InboxService:
    """Service for inbox operations: listing threads, reading, and replying."""

    def __init__(self, session: AsyncSession, n8n_client: N8nClient | None = None) -> None:
        self.session = session
        self.n8n_client = n8n_client
        self.contact_repo = ContactRepository(session)
        self.message_repo = MessageRepository(session)

    async def list_conversations(self, limit: int = 50) -> list[Conversation]:
        """List conversations by latest message, newest first.

        Messages are grouped by contact id, or by phone number when the
        message is not linked to a contact.

        Args:
            limit: Maximum number of conversations

        Returns:
            Conversations with their latest message and unread count
        """
        messages = await self.message_repo.list_recent(limit * CONVERSATION_SCAN_FACTOR)

        conversations: dict[str, Conversation] = {}
        for message in messages:
            key = message.contact_id or message.phone_e164
            if not key or key in conversations:
                continue
            conversations[key] = Conversation(
                conversation_key=key,
                contact=None,
                phone_e164=message.phone_e164,
                latest_message=message,
            )

        contact_ids = [c.conversation_key for c in conversations.values() if c.latest_message.contact_id]
        phones = [c.conversation_key for c in conversations.values() if not c.latest_message.contact_id]

        contacts = {c.id: c for c in await self.contact_repo.list_by_ids(contact_ids)}
        unread = await self.message_repo.unread_counts_by_contact(contact_ids)
        unread.update(await self.message_repo.unread_counts_by_phone(phones))

        for conversation in conversations.values():
            conversation.contact = contacts.get(conversation.conversation_key)
            conversation.unread_count = unread.get(conversation.conversation_key, 0)

        ordered = sorted(conversations.values(), key=lambda c: c.latest_message.created_at, reverse=True)
        return ordered[:limit]

    async def get_thread(self, contact_id: str, newest_first: bool = False) -> list[Message]:
        """All messages with one contact, oldest first unless asked otherwise."""
        return await self.message_repo.list_for_contact(contact_id, newest_first=newest_first)

    async def mark_read(self, contact_id: str) -> int:
        """Mark a contact's inbound messages as read."""
        updated = await self.message_repo.mark_read(contact_id, utcnow())
        logger.info(f"Marked {updated} messages read for contact {contact_id}")
        return updated

    async def unread_count(self) -> int:
        return await self.message_repo.count_unread()

    async def send_message(self, contact_id: str, request: SendMessageRequest) -> Message | None:
        """Record an outbound message and hand it to the n8n workflow.

        The message is stored as ``sent`` first. A webhook failure is logged
        and leaves it that way; a workflow reply carrying ``message_id``
        marks it ``delivered``.

        Returns:
            The stored message, or None when the contact does not exist
        """
        contact = await self.contact_repo.get_by_id(contact_id)
        if contact is None:
            return None

        message = Message(
            contact_id=contact.id,
            phone_e164=contact.phone_e164,
            direction="out",
            status="sent",
            template_name=request.template_name,
            body=request.body,
            is_read=False,
            created_at=utcnow(),
        )
        self.session.add(message)
        await self.session.flush()

        client = self.n8n_client or await N8nClient.from_session(self.session)
        if client.is_configured:
            try:
                response = await client.send_message(contact.id, contact.phone_e164, self._message_payload(request))
            except CampaignError as e:
                logger.warning(f"Message {message.id} to contact {contact.id} not handed off: {e}")
            else:
                if isinstance(response, dict) and response.get("success") is True and response.get("message_id"):
                    message.status = "delivered"
                    message.provider_message_id = response["message_id"]

        self.session.add(
            Event(
                contact_id=contact.id,
                type=EventType.WHATSAPP_OUTBOUND,
                meta={
                    "message_id": message.id,
                    "body": request.body,
                    "template_name": request.template_name,
                },
            )
        )
        await self.session.commit()
        return message

    @staticmethod
    def _message_payload(request: SendMessageRequest) -> dict[str, Any]:
        payload = {
            "body": request.body,
            "template_name": request.template_name,
            "template_language": request.template_language,
            "template_variables": request.template_variables,
        }
        return {key: value for key, value in payload.items() if value is not None}
