"""Contacts API endpoints."""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, computed_field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.messages import MessageResponse, MessagesResponse
from app.core.dob import format_dob_for_display
from app.domain.services.contact_service import ContactService, ContactValidationError
from app.domain.services.inbox_service import InboxService
from app.persistence.database import get_db
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.event_repository import EventRepository
from app.persistence.repositories.score_repository import ScoreRepository

router = APIRouter()


# ============== Response Models ==============

class ContactResponse(BaseModel):
    """Contact response model."""

    id: str
    full_name: str | None
    phone_e164: str
    source: str | None
    tags: list[str]
    opt_in_status: bool
    opt_in_timestamp: datetime | None
    opt_in_source: str | None
    last_purchase_at: str | None
    total_spend: float
    interest_type: str | None
    dob: str | None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def dob_display(self) -> str:
        return format_dob_for_display(self.dob)

    class Config:
        from_attributes = True


class ContactsListResponse(BaseModel):
    """Contacts list response."""

    contacts: list[ContactResponse]
    total: int
    page: int
    page_size: int


class ScoreResponse(BaseModel):
    """Stored score for a contact."""

    contact_id: str
    score: float
    segment: str
    reasons: list[str]
    computed_at: datetime

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    """Contact event."""

    id: str
    type: str
    meta: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Request Models ==============

class UpdateContactRequest(BaseModel):
    """Update contact request. Only provided fields change."""

    full_name: str | None = None
    phone_e164: str | None = None
    source: str | None = None
    tags: list[str] | None = None
    opt_in_status: bool | None = None
    opt_in_source: str | None = None
    last_purchase_at: str | None = None
    total_spend: float | None = None
    interest_type: str | None = None
    dob: str | None = None


# ============== Endpoints ==============

@router.get("", response_model=ContactsListResponse)
async def list_contacts(
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    segment: str | None = Query(None, pattern="^(hot|warm|cold)$"),
    search: str | None = Query(None, max_length=255),
) -> ContactsListResponse:
    """List contacts newest first, optionally by segment or name/phone search."""
    contact_repo = ContactRepository(db)
    contacts, total = await contact_repo.search(
        skip=(page - 1) * page_size,
        limit=page_size,
        segment=segment,
        query=search.strip() if search else None,
    )
    return ContactsListResponse(
        contacts=[ContactResponse.model_validate(c) for c in contacts],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ContactResponse:
    """Get a contact by id."""
    contact = await ContactRepository(db).get_by_id(contact_id)
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return ContactResponse.model_validate(contact)


@router.patch("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: str,
    request: UpdateContactRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ContactResponse:
    """Update a contact. Phone and DOB are re-normalized."""
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    try:
        contact = await ContactService(db).update_contact(contact_id, changes)
    except ContactValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return ContactResponse.model_validate(contact)


@router.get("/{contact_id}/score", response_model=ScoreResponse)
async def get_contact_score(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ScoreResponse:
    """Get the stored score for a contact."""
    score = await ScoreRepository(db).get_by_contact(contact_id)
    if not score:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Score not found")
    return ScoreResponse.model_validate(score)


@router.get("/{contact_id}/events", response_model=list[EventResponse])
async def list_contact_events(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(100, ge=1, le=500),
) -> list[EventResponse]:
    """List a contact's events, newest first."""
    events = await EventRepository(db).list_for_contact(contact_id, limit=limit)
    return [EventResponse.model_validate(e) for e in events]


@router.get("/{contact_id}/messages", response_model=MessagesResponse)
async def list_contact_messages(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessagesResponse:
    """List a contact's messages, newest first."""
    messages = await InboxService(db).get_thread(contact_id, newest_first=True)
    return MessagesResponse(messages=[MessageResponse.model_validate(m) for m in messages])
