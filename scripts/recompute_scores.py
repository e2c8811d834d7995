"""Recompute lead scores for every contact and print the segment breakdown."""

import asyncio
import os
import sys
from collections import Counter

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.domain.services.scoring_service import ScoringService, Segment
from app.logging_config import setup_logging
from app.persistence.database import AsyncSessionLocal


async def recompute_all():
    """Score all contacts and summarize by segment."""
    async with AsyncSessionLocal() as db:
        rows = await ScoringService(db).recompute()

    if not rows:
        print("No contacts to score")
        return

    segments = Counter(row["segment"] for row in rows)
    print("=" * 40)
    print(f"Scored {len(rows)} contacts at {rows[0]['computed_at'].isoformat()}")
    print("=" * 40)
    for segment in Segment:
        print(f"{segment.value:<6} {segments.get(segment.value, 0):>6}")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(recompute_all())
