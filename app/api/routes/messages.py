"""WhatsApp inbox endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_n8n_client
from app.domain.services.inbox_service import InboxService, SendMessageRequest
from app.infrastructure.n8n_client import N8nClient
from app.persistence.database import get_db

router = APIRouter()


# ============== Response Models ==============

class MessageResponse(BaseModel):
    """Stored WhatsApp message."""

    id: str
    contact_id: str | None
    phone_e164: str | None
    direction: str
    template_name: str | None
    status: str
    provider_message_id: str | None
    body: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class MessagesResponse(BaseModel):
    messages: list[MessageResponse]


class ConversationContact(BaseModel):
    id: str | None
    full_name: str | None
    phone_e164: str
    opt_in_status: bool

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    """Inbox row: the thread's contact, latest message and unread count."""

    conversation_key: str
    contact: ConversationContact | None
    phone_e164: str | None
    latest_message: MessageResponse
    unread_count: int


class ConversationsResponse(BaseModel):
    conversations: list[ConversationResponse]


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    success: bool
    updated: int


class SendMessageResponse(BaseModel):
    success: bool
    message: MessageResponse


# ============== Request Models ==============

class SendMessageBody(BaseModel):
    body: str = Field(..., min_length=1)
    template_name: str | None = None
    template_language: str | None = None
    template_variables: list[str] | None = None


# ============== Endpoints ==============

@router.get("/conversations", response_model=ConversationsResponse)
async def list_conversations(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=200),
) -> ConversationsResponse:
    """List conversations by most recent message."""
    conversations = await InboxService(db).list_conversations(limit=limit)

    items = []
    for conv in conversations:
        contact = None
        if conv.contact is not None:
            contact = ConversationContact.model_validate(conv.contact)
        elif conv.phone_e164:
            # Unlinked number: show it as an anonymous contact
            contact = ConversationContact(id=None, full_name=None, phone_e164=conv.phone_e164, opt_in_status=True)
        items.append(
            ConversationResponse(
                conversation_key=conv.conversation_key,
                contact=contact,
                phone_e164=conv.phone_e164,
                latest_message=MessageResponse.model_validate(conv.latest_message),
                unread_count=conv.unread_count,
            )
        )
    return ConversationsResponse(conversations=items)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> UnreadCountResponse:
    """Count unread inbound messages."""
    return UnreadCountResponse(unread_count=await InboxService(db).unread_count())


@router.get("/{contact_id}", response_model=MessagesResponse)
async def get_contact_thread(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessagesResponse:
    """Get a contact's conversation, oldest message first."""
    messages = await InboxService(db).get_thread(contact_id)
    return MessagesResponse(messages=[MessageResponse.model_validate(m) for m in messages])


@router.post("/{contact_id}", response_model=SendMessageResponse)
async def send_message(
    contact_id: str,
    request: SendMessageBody,
    db: Annotated[AsyncSession, Depends(get_db)],
    n8n_client: Annotated[N8nClient, Depends(get_n8n_client)],
) -> SendMessageResponse:
    """Send one message to a contact through the n8n workflow."""
    message = await InboxService(db, n8n_client=n8n_client).send_message(
        contact_id,
        SendMessageRequest(
            body=request.body,
            template_name=request.template_name,
            template_language=request.template_language,
            template_variables=request.template_variables,
        ),
    )
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return SendMessageResponse(success=True, message=MessageResponse.model_validate(message))


@router.post("/{contact_id}/read", response_model=MarkReadResponse)
async def mark_thread_read(
    contact_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MarkReadResponse:
    """Mark a contact's inbound messages as read."""
    updated = await InboxService(db).mark_read(contact_id)
    return MarkReadResponse(success=True, updated=updated)
