"""Campaign API endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_n8n_client
from app.api.routes.contacts import ContactResponse
from app.domain.exceptions import (
    QuotaExceededError,
    WebhookDeliveryError,
    WebhookNotConfiguredError,
)
from app.domain.services.campaign_filter_service import CampaignFilterService, CampaignFilterSpec
from app.domain.services.campaign_service import CampaignRequest, CampaignService
from app.domain.services.whatsapp_protection_service import ProviderErrorAdvice, classify_provider_error
from app.infrastructure.n8n_client import N8nClient
from app.persistence.database import get_db
from app.persistence.repositories.contact_repository import ContactRepository

logger = logging.getLogger(__name__)

router = APIRouter()

SEGMENT_PATTERN = "^(hot|warm|cold)$"


# ============== Request Models ==============

class FilteredAudienceRequest(BaseModel):
    """Segment plus audience filters (camelCase or snake_case keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    segment: str = Field(pattern=SEGMENT_PATTERN)
    filters: CampaignFilterSpec = Field(default_factory=CampaignFilterSpec)


class TriggerCampaignRequest(BaseModel):
    """Campaign send request."""

    segment: str | None = Field(default=None, pattern=SEGMENT_PATTERN)
    template_name: str | None = None
    template_language: str | None = None
    template_variables: list[str] | None = None
    manual_message: str | None = None
    selected_contact_ids: list[str] | None = None
    filters: CampaignFilterSpec = Field(default_factory=CampaignFilterSpec)


# ============== Response Models ==============

class EligibleCountResponse(BaseModel):
    """Audience sizes for a campaign preview."""

    segment: str
    segment_total: int
    after_filters: int
    sendable: int
    count: int | None = None


class FilteredContactsResponse(BaseModel):
    """Contacts a campaign would target."""

    contacts: list[ContactResponse]
    total: int


class TriggerCampaignResponse(BaseModel):
    """Campaign send result."""

    success: bool
    sent: int
    matched_count: int
    sendable_count: int
    contact_ids: list[str]
    campaign_id: str | None = None
    message: str | None = None
    n8n_response: Any = None


# ============== Endpoints ==============

async def _counts(db: AsyncSession, segment: str, filters: CampaignFilterSpec) -> EligibleCountResponse:
    counts = await CampaignFilterService(db).get_campaign_counts(segment, filters)
    return EligibleCountResponse(
        segment=segment,
        segment_total=counts.segment_total,
        after_filters=counts.after_filters,
        sendable=counts.sendable,
    )


@router.get("/eligible-count", response_model=EligibleCountResponse)
async def get_eligible_count(
    db: Annotated[AsyncSession, Depends(get_db)],
    segment: str = Query(..., pattern=SEGMENT_PATTERN),
) -> EligibleCountResponse:
    """Unfiltered audience sizes for a segment."""
    response = await _counts(db, segment, CampaignFilterSpec())
    response.count = response.sendable
    return response


@router.post("/eligible-count", response_model=EligibleCountResponse)
async def post_eligible_count(
    request: FilteredAudienceRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> EligibleCountResponse:
    """Audience sizes for a segment with filters applied."""
    return await _counts(db, request.segment, request.filters)


@router.post("/filtered-contacts", response_model=FilteredContactsResponse)
async def get_filtered_contacts(
    request: FilteredAudienceRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> FilteredContactsResponse:
    """Full contact rows matching a segment and filters, newest first."""
    contact_ids = await CampaignFilterService(db).apply_campaign_filters(request.segment, request.filters)
    contacts = await ContactRepository(db).list_by_ids(contact_ids, newest_first=True)
    return FilteredContactsResponse(
        contacts=[ContactResponse.model_validate(c) for c in contacts],
        total=len(contacts),
    )


@router.post("/trigger", response_model=TriggerCampaignResponse)
async def trigger_campaign(
    request: TriggerCampaignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    n8n_client: Annotated[N8nClient, Depends(get_n8n_client)],
):
    """Send a campaign through the n8n workflow."""
    service = CampaignService(db, n8n_client=n8n_client)
    campaign = CampaignRequest(
        segment=request.segment,
        template_name=request.template_name,
        template_language=request.template_language,
        template_variables=request.template_variables,
        manual_message=request.manual_message,
        selected_contact_ids=request.selected_contact_ids,
        filters=request.filters,
    )

    try:
        result = await service.trigger(campaign)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except WebhookNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except QuotaExceededError as e:
        logger.warning(f"Campaign blocked: {e} ({e.sent}/{e.limit})")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "detail": str(e),
                "period": e.period,
                "sent": e.sent,
                "limit": e.limit,
                "remaining": e.remaining,
                "resetAt": _isoformat(e.reset_at),
            },
        )
    except WebhookDeliveryError as e:
        advice = _classify_delivery_error(e)
        logger.error(f"Campaign webhook failed: {advice.message} (backoff {advice.backoff_seconds}s)")
        headers = {"Retry-After": str(advice.backoff_seconds)} if advice.should_backoff else None
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "detail": str(e),
                "details": e.details,
                "error_type": advice.message,
                "retry_after_seconds": advice.backoff_seconds if advice.should_backoff else None,
            },
            headers=headers,
        )

    return TriggerCampaignResponse(
        success=True,
        sent=result.sent,
        matched_count=result.matched_count,
        sendable_count=result.sendable_count,
        contact_ids=result.contact_ids,
        campaign_id=result.campaign_id,
        message=result.message,
        n8n_response=result.response,
    )


def _isoformat(value: datetime) -> str:
    return value.isoformat() + "Z"


def _classify_delivery_error(error: WebhookDeliveryError) -> ProviderErrorAdvice:
    # The workflow relays the provider's error body as the webhook response
    details = error.details if isinstance(error.details, dict) else {}
    return classify_provider_error(
        {
            "message": details.get("message") or details.get("error") or f"{error} {error.details or ''}",
            "code": details.get("code"),
            "status": error.status_code,
        }
    )
