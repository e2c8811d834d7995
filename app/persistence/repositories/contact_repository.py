"""Contact repository."""

from collections.abc import Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.contact import Contact
from app.persistence.models.score import Score
from app.persistence.repositories.base import BaseRepository


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact entities."""

    def __init__(self, session: AsyncSession):
        """Initialize contact repository."""
        super().__init__(Contact, session)

    async def get_by_phone(self, phone_e164: str) -> Contact | None:
        """Get contact by normalized phone number.

        Args:
            phone_e164: Phone in E.164 format

        Returns:
            Contact or None if not found
        """
        stmt = select(Contact).where(Contact.phone_e164 == phone_e164)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_existing_phones(self, phones: Iterable[str]) -> set[str]:
        """Return the subset of phones that already belong to a contact."""
        phones = list(set(phones))
        if not phones:
            return set()
        stmt = select(Contact.phone_e164).where(Contact.phone_e164.in_(phones))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def list_by_ids(self, contact_ids: Iterable[str], newest_first: bool = False) -> list[Contact]:
        """Load full contact rows for a set of ids.

        Args:
            contact_ids: Contact ids to load
            newest_first: Order by created_at descending

        Returns:
            Contacts found (missing ids are ignored)
        """
        contact_ids = list(contact_ids)
        if not contact_ids:
            return []

        stmt = select(Contact).where(Contact.id.in_(contact_ids))
        if newest_first:
            stmt = stmt.order_by(Contact.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self) -> list[Contact]:
        """Load every contact."""
        result = await self.session.execute(select(Contact))
        return list(result.scalars().all())

    async def search(
        self,
        skip: int = 0,
        limit: int = 100,
        segment: str | None = None,
        query: str | None = None,
    ) -> tuple[list[Contact], int]:
        """List contacts newest first with optional segment and text search.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            segment: Only contacts whose score has this segment
            query: Case-insensitive match on name or phone

        Returns:
            Tuple of (contacts page, total matching count)
        """
        stmt = select(Contact)
        if segment:
            stmt = stmt.join(Score, Score.contact_id == Contact.id).where(Score.segment == segment)
        if query:
            pattern = f"%{query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Contact.full_name).like(pattern),
                    Contact.phone_e164.like(f"%{query}%"),
                )
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(Contact.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def add_tag(self, contact_ids: Iterable[str], tag: str) -> int:
        """Append a tag to contacts that do not have it yet.

        Returns:
            Number of contacts updated
        """
        contacts = await self.list_by_ids(contact_ids)
        updated = 0
        for contact in contacts:
            tags = list(contact.tags or [])
            if tag in tags:
                continue
            # Assign a new list so SQLAlchemy sees the JSON change
            contact.tags = tags + [tag]
            updated += 1

        if updated:
            await self.session.commit()
        return updated
