"""FastAPI dependencies shared by route modules."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.n8n_client import N8nClient
from app.persistence.database import get_db


async def get_n8n_client(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> N8nClient:
    """Get an n8n client for the currently configured webhook.

    Args:
        db: Database session

    Returns:
        N8nClient (may be unconfigured)
    """
    return await N8nClient.from_session(db)
