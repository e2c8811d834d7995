"""Contact event repository."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.event import Event
from app.persistence.repositories.base import BaseRepository


class EventRepository(BaseRepository[Event]):
    """Repository for Event entities."""

    def __init__(self, session: AsyncSession):
        """Initialize event repository."""
        super().__init__(Event, session)

    async def create_many(self, contact_ids: list[str], event_type: str, meta: dict[str, Any]) -> int:
        """Record the same event for several contacts in one commit.

        Returns:
            Number of events written
        """
        for contact_id in contact_ids:
            self.session.add(Event(contact_id=contact_id, type=event_type, meta=dict(meta)))
        await self.session.commit()
        return len(contact_ids)

    async def list_for_contact(self, contact_id: str, limit: int = 100) -> list[Event]:
        """List a contact's events newest first."""
        stmt = (
            select(Event)
            .where(Event.contact_id == contact_id)
            .order_by(Event.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
