"""Scoring API endpoints."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services.scoring_service import ScoringService
from app.persistence.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


class RunScoringRequest(BaseModel):
    """Score only these contacts; all contacts when omitted."""

    contact_ids: list[str] | None = None


class RunScoringResponse(BaseModel):
    """Scoring run result."""

    success: bool
    scored: int
    computed_at: datetime | None


class LastComputedResponse(BaseModel):
    """When scores were last computed."""

    last_computed_at: datetime | None


@router.post("/run", response_model=RunScoringResponse)
async def run_scoring(
    db: Annotated[AsyncSession, Depends(get_db)],
    request: RunScoringRequest | None = None,
) -> RunScoringResponse:
    """Recompute and store scores."""
    contact_ids = request.contact_ids if request else None
    rows = await ScoringService(db).recompute(contact_ids)
    if not rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No contacts to score")

    return RunScoringResponse(success=True, scored=len(rows), computed_at=rows[0]["computed_at"])


@router.get("/last-computed", response_model=LastComputedResponse)
async def get_last_computed(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> LastComputedResponse:
    """Get the latest score computation time."""
    return LastComputedResponse(last_computed_at=await ScoringService(db).last_computed_at())
