"""WhatsApp bridge webhook endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.services.message_ingestion_service import MessageIngestionService
from app.persistence.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


class BridgeMessage(BaseModel):
    """Message as relayed by the WhatsApp bridge.

    The bridge is loose about field names: the phone may arrive as ``from``,
    ``phone_e164`` or ``phone`` and the text as ``body``, ``message`` or ``text``.
    """

    phone: str
    body: str | None = None
    message_id: str | None = None
    timestamp: str | None = None
    name: str | None = None
    template_name: str | None = None
    status: str | None = None

    @classmethod
    def from_payload(cls, payload: dict | list) -> "BridgeMessage":
        # The bridge sometimes wraps a single message in a list
        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        phone = payload.get("from") or payload.get("phone_e164") or payload.get("phone") or ""
        if not str(phone).strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing phone number")
        return cls(
            phone=str(phone),
            body=payload.get("body") or payload.get("message") or payload.get("text"),
            message_id=payload.get("message_id") or payload.get("id"),
            timestamp=payload.get("timestamp"),
            name=payload.get("name") or payload.get("pushName"),
            template_name=payload.get("template_name"),
            status=payload.get("status"),
        )


class IngestResponse(BaseModel):
    success: bool
    contact_id: str | None
    message_id: str | None
    phone_e164: str
    duplicate: bool = False


@router.post("/webhook", response_model=IngestResponse)
async def inbound_webhook(
    db: Annotated[AsyncSession, Depends(get_db)],
    payload: dict | list = Body(...),
) -> IngestResponse:
    """Receive a message a contact sent to the business number."""
    message = BridgeMessage.from_payload(payload)
    result = await MessageIngestionService(db).record_inbound(
        message.phone,
        message.body,
        provider_message_id=message.message_id,
        timestamp=message.timestamp,
        full_name=message.name,
    )
    logger.info(f"Inbound message from {result.phone_e164} stored (contact={result.contact_id})")
    return IngestResponse(
        success=True,
        contact_id=result.contact_id,
        message_id=result.message_id,
        phone_e164=result.phone_e164,
        duplicate=result.duplicate,
    )


@router.post("/outbound", response_model=IngestResponse)
async def outbound_callback(
    db: Annotated[AsyncSession, Depends(get_db)],
    payload: dict | list = Body(...),
) -> IngestResponse:
    """Record a message the bridge sent on our behalf."""
    message = BridgeMessage.from_payload(payload)
    result = await MessageIngestionService(db).record_outbound(
        message.phone,
        message.body,
        provider_message_id=message.message_id,
        timestamp=message.timestamp,
        template_name=message.template_name,
        status=message.status or "delivered",
    )
    return IngestResponse(
        success=True,
        contact_id=result.contact_id,
        message_id=result.message_id,
        phone_e164=result.phone_e164,
        duplicate=result.duplicate,
    )
