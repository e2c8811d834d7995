"""Score repository."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.contact import Contact
from app.persistence.models.score import Score
from app.persistence.repositories.base import BaseRepository


class ScoreRepository(BaseRepository[Score]):
    """Repository for Score entities."""

    def __init__(self, session: AsyncSession):
        """Initialize score repository."""
        super().__init__(Score, session)

    async def get_by_contact(self, contact_id: str) -> Score | None:
        """Get the current score of a contact."""
        return await self.get_by_id(contact_id)

    async def list_contact_ids_by_segment(
        self, segment: str, min_score: float | None = None
    ) -> list[str]:
        """Contact ids whose current score is in a segment.

        Args:
            segment: hot / warm / cold
            min_score: Inclusive lower bound on the score

        Returns:
            Contact ids
        """
        stmt = select(Score.contact_id).where(Score.segment == segment)
        if min_score is not None:
            stmt = stmt.where(Score.score >= min_score)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_contacts_in_segment(self, segment: str) -> int:
        """Count existing contacts whose score is in a segment."""
        stmt = (
            select(func.count())
            .select_from(Score)
            .join(Contact, Contact.id == Score.contact_id)
            .where(Score.segment == segment)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def upsert_many(self, rows: Iterable[dict[str, Any]]) -> int:
        """Insert or overwrite score rows keyed by contact_id.

        Args:
            rows: Dicts with contact_id, score, segment, reasons, computed_at

        Returns:
            Number of rows written
        """
        rows = list(rows)
        if not rows:
            return 0

        contact_ids = [row["contact_id"] for row in rows]
        result = await self.session.execute(select(Score).where(Score.contact_id.in_(contact_ids)))
        existing = {score.contact_id: score for score in result.scalars().all()}

        for row in rows:
            score = existing.get(row["contact_id"])
            if score is None:
                self.session.add(Score(**row))
                continue
            score.score = row["score"]
            score.segment = row["segment"]
            score.reasons = list(row["reasons"])
            score.computed_at = row["computed_at"]

        await self.session.commit()
        return len(rows)

    async def last_computed_at(self) -> datetime | None:
        """Most recent computed_at across all scores."""
        result = await self.session.execute(select(func.max(Score.computed_at)))
        return result.scalar_one_or_none()
