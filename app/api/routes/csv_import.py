"""CSV import endpoint.

The browser parses and maps CSV columns; this endpoint receives the mapped rows.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_n8n_client
from app.domain.services.contact_import_service import ContactImportService, ImportRow
from app.infrastructure.n8n_client import N8nClient
from app.persistence.database import get_db

router = APIRouter()


class ImportRequest(BaseModel):
    """Mapped CSV rows."""

    contacts: list[ImportRow]


class ImportCounts(BaseModel):
    imported: int
    duplicates: int
    invalid: int
    total: int


class ImportResponse(BaseModel):
    """Import outcome."""

    success: bool
    import_batch_id: str
    counts: ImportCounts


@router.post("/import", response_model=ImportResponse)
async def import_contacts(
    request: ImportRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    n8n_client: Annotated[N8nClient, Depends(get_n8n_client)],
) -> ImportResponse:
    """Import contacts; invalid and duplicate phones are skipped and counted."""
    if not request.contacts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No contacts provided")

    result = await ContactImportService(db, n8n_client=n8n_client).import_rows(request.contacts)
    return ImportResponse(
        success=True,
        import_batch_id=result.import_batch_id,
        counts=ImportCounts(**result.counts),
    )
