"""Message repository."""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.message import Message
from app.persistence.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for Message entities."""

    def __init__(self, session: AsyncSession):
        """Initialize message repository."""
        super().__init__(Message, session)

    async def get_by_provider_id(self, provider_message_id: str) -> Message | None:
        """Get message by the bridge's message id."""
        stmt = select(Message).where(Message.provider_message_id == provider_message_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_outbound(
        self,
        start: datetime,
        end: datetime | None = None,
        contact_id: str | None = None,
    ) -> int:
        """Count outbound messages created in [start, end).

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound, open-ended when None
            contact_id: Restrict to one contact

        Returns:
            Number of outbound messages
        """
        stmt = select(func.count()).select_from(Message).where(
            Message.direction == "out",
            Message.created_at >= start,
        )
        if end is not None:
            stmt = stmt.where(Message.created_at < end)
        if contact_id is not None:
            stmt = stmt.where(Message.contact_id == contact_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def last_created_at(
        self, contact_id: str, direction: str, since: datetime | None = None
    ) -> datetime | None:
        """Timestamp of a contact's latest message in one direction."""
        stmt = select(func.max(Message.created_at)).where(
            Message.contact_id == contact_id,
            Message.direction == direction,
        )
        if since is not None:
            stmt = stmt.where(Message.created_at >= since)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def last_outbound_at(self) -> datetime | None:
        """Timestamp of the most recent outbound message to anyone."""
        stmt = select(func.max(Message.created_at)).where(Message.direction == "out")
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_contact(self, contact_id: str, newest_first: bool = False) -> list[Message]:
        """All messages exchanged with a contact."""
        order = Message.created_at.desc() if newest_first else Message.created_at.asc()
        stmt = select(Message).where(Message.contact_id == contact_id).order_by(order)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent(self, limit: int) -> list[Message]:
        """Latest messages across all conversations, newest first."""
        stmt = select(Message).order_by(Message.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self) -> int:
        """Unread inbound messages across all conversations."""
        stmt = select(func.count()).select_from(Message).where(
            Message.direction == "in",
            Message.is_read.is_(False),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def unread_counts_by_contact(self, contact_ids: list[str]) -> dict[str, int]:
        """Unread inbound message counts keyed by contact id."""
        if not contact_ids:
            return {}
        stmt = (
            select(Message.contact_id, func.count())
            .where(
                Message.contact_id.in_(contact_ids),
                Message.direction == "in",
                Message.is_read.is_(False),
            )
            .group_by(Message.contact_id)
        )
        result = await self.session.execute(stmt)
        return {contact_id: count for contact_id, count in result.all()}

    async def unread_counts_by_phone(self, phones: list[str]) -> dict[str, int]:
        """Unread inbound counts for messages not linked to any contact."""
        if not phones:
            return {}
        stmt = (
            select(Message.phone_e164, func.count())
            .where(
                Message.phone_e164.in_(phones),
                Message.contact_id.is_(None),
                Message.direction == "in",
                Message.is_read.is_(False),
            )
            .group_by(Message.phone_e164)
        )
        result = await self.session.execute(stmt)
        return {phone: count for phone, count in result.all()}

    async def mark_read(self, contact_id: str, read_at: datetime) -> int:
        """Mark a contact's unread inbound messages as read.

        Returns:
            Number of messages updated
        """
        stmt = (
            update(Message)
            .where(
                Message.contact_id == contact_id,
                Message.direction == "in",
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount
