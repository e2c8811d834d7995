"""Tests for campaign trigger orchestration."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.timestamps import utcnow
from app.domain.exceptions import QuotaExceededError, WebhookDeliveryError, WebhookNotConfiguredError
from app.domain.services.campaign_filter_service import CampaignFilterSpec
from app.domain.services.campaign_service import CampaignRequest, CampaignService, is_recent_buyer
from app.domain.services.whatsapp_protection_service import ProtectionConfig
from app.infrastructure.n8n_client import N8nClient, WebhookConfig, load_webhook_config
from app.persistence.models.app_setting import N8N_WEBHOOK_URL_KEY
from app.persistence.models.event import EventType
from app.persistence.models.message import Message
from app.persistence.repositories.app_setting_repository import AppSettingRepository
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.event_repository import EventRepository


def _mock_client(response=None):
    client = MagicMock(spec=N8nClient)
    client.send_campaign = AsyncMock(return_value=response or {"status": "queued"})
    return client


def test_request_requires_content_and_audience():
    with pytest.raises(ValueError, match="template_name or manual_message"):
        CampaignRequest(segment="hot").validate()
    with pytest.raises(ValueError, match="selected_contact_ids or segment"):
        CampaignRequest(template_name="promo").validate()


@pytest.mark.asyncio
async def test_trigger_sends_filtered_segment(db_session, make_contact):
    recent = utcnow() - timedelta(days=10)
    buyer = await make_contact(segment="warm", score=40, source="referral", last_purchase_at=recent.isoformat())
    other = await make_contact(segment="warm", score=40, source="referral")
    await make_contact(segment="warm", score=40, source="website")

    client = _mock_client()
    request = CampaignRequest(
        segment="warm",
        template_name="new_collection",
        template_language="en",
        filters=CampaignFilterSpec(sources=["referral"]),
    )
    result = await CampaignService(db_session, n8n_client=client).trigger(request)

    assert result.sent == 2
    assert result.matched_count == 2
    assert sorted(result.contact_ids) == sorted([buyer.id, other.id])
    assert result.campaign_id

    payload = client.send_campaign.await_args.args[0]
    assert payload["segment"] == "warm"
    assert payload["template_name"] == "new_collection"
    assert "manual_message" not in payload
    assert payload["send_delay_ms"] == 2000
    assert payload["delay_between_messages_ms"] == 2000
    assert {c["id"] for c in payload["contacts"]} == {buyer.id, other.id}

    repo = ContactRepository(db_session)
    assert "recent_buyer" in (await repo.get_by_id(buyer.id)).tags
    assert "recent_buyer" not in (await repo.get_by_id(other.id)).tags

    events = await EventRepository(db_session).list_for_contact(other.id)
    assert [e.type for e in events] == [EventType.WHATSAPP_OUTBOUND]
    assert events[0].meta["campaign_id"] == result.campaign_id
    assert events[0].meta["filters"] == {"sources": ["referral"]}


@pytest.mark.asyncio
async def test_selected_contacts_bypass_segment_filters(db_session, make_contact):
    picked = await make_contact()
    client = _mock_client()

    result = await CampaignService(db_session, n8n_client=client).trigger(
        CampaignRequest(manual_message="Hello!", selected_contact_ids=[picked.id, picked.id])
    )

    assert result.contact_ids == [picked.id]
    events = await EventRepository(db_session).list_for_contact(picked.id)
    assert events[0].meta["segment"] == "selected"


@pytest.mark.asyncio
async def test_empty_audience_does_not_call_webhook(db_session):
    client = _mock_client()

    result = await CampaignService(db_session, n8n_client=client).trigger(
        CampaignRequest(segment="hot", template_name="promo")
    )

    assert result.sent == 0
    assert result.message == "No contacts match the filters"
    client.send_campaign.assert_not_awaited()


@pytest.mark.asyncio
async def test_opt_in_gate_when_enabled(db_session, make_contact, monkeypatch):
    from app.settings import settings

    monkeypatch.setattr(settings, "campaign_require_opt_in", True)
    await make_contact(segment="cold", opt_in_status=False)
    client = _mock_client()

    result = await CampaignService(db_session, n8n_client=client).trigger(
        CampaignRequest(segment="cold", template_name="promo")
    )

    assert result.sent == 0
    assert result.matched_count == 1
    assert result.message == "No opted-in contacts after filters"


@pytest.mark.asyncio
async def test_daily_quota_blocks_campaign(db_session, make_contact):
    contact = await make_contact(segment="cold")
    db_session.add(Message(contact_id=contact.id, direction="out", status="sent", created_at=utcnow()))
    await db_session.commit()
    client = _mock_client()

    service = CampaignService(db_session, n8n_client=client, protection_config=ProtectionConfig(max_messages_per_day=1))
    with pytest.raises(QuotaExceededError) as exc_info:
        await service.trigger(CampaignRequest(segment="cold", template_name="promo"))

    assert exc_info.value.period == "daily"
    assert exc_info.value.remaining == 0
    client.send_campaign.assert_not_awaited()


@pytest.mark.asyncio
async def test_contacts_over_frequency_limit_are_skipped(db_session, make_contact):
    busy = await make_contact(segment="cold")
    idle = await make_contact(segment="cold")
    db_session.add(Message(contact_id=busy.id, direction="out", status="sent", created_at=utcnow()))
    await db_session.commit()
    client = _mock_client()

    config = ProtectionConfig(max_messages_per_contact_per_day=1)
    result = await CampaignService(db_session, n8n_client=client, protection_config=config).trigger(
        CampaignRequest(segment="cold", template_name="promo")
    )

    assert result.contact_ids == [idle.id]
    assert result.matched_count == 2


def test_is_recent_buyer(now):
    class C:
        last_purchase_at = None

    contact = C()
    contact.last_purchase_at = (now - timedelta(days=59)).isoformat()
    assert is_recent_buyer(contact, now)
    contact.last_purchase_at = (now - timedelta(days=61)).isoformat()
    assert not is_recent_buyer(contact, now)
    contact.last_purchase_at = "last month"
    assert not is_recent_buyer(contact, now)


# ============== n8n client ==============

@pytest.mark.asyncio
async def test_webhook_config_prefers_settings_table(db_session, monkeypatch):
    from app.settings import settings

    monkeypatch.setattr(settings, "n8n_webhook_url", "https://env.example/webhook")
    assert (await load_webhook_config(db_session)).url == "https://env.example/webhook"

    await AppSettingRepository(db_session).set_value(
        N8N_WEBHOOK_URL_KEY, {"url": "https://db.example/webhook", "secret": "s3cret"}
    )
    assert await load_webhook_config(db_session) == WebhookConfig("https://db.example/webhook", "s3cret")


@pytest.mark.asyncio
async def test_unconfigured_client_raises():
    with pytest.raises(WebhookNotConfiguredError):
        await N8nClient(None).send_campaign({"contacts": []})


@pytest.mark.asyncio
async def test_client_sends_secret_header():
    response = httpx.Response(200, json={"ok": True}, request=httpx.Request("POST", "https://n8n.example/hook"))
    mock_post = AsyncMock(return_value=response)

    with patch("httpx.AsyncClient.post", mock_post):
        result = await N8nClient(WebhookConfig("https://n8n.example/hook", "s3cret")).send_campaign({"segment": "hot"})

    assert result == {"ok": True}
    _, kwargs = mock_post.await_args
    assert kwargs["headers"]["X-Webhook-Secret"] == "s3cret"
    assert kwargs["json"]["campaign_type"] == "whatsapp"
    assert kwargs["json"]["segment"] == "hot"
    assert "timestamp" in kwargs["json"]


@pytest.mark.asyncio
async def test_client_wraps_http_errors():
    request = httpx.Request("POST", "https://n8n.example/hook")
    response = httpx.Response(500, text="workflow crashed", request=request)

    with patch("httpx.AsyncClient.post", AsyncMock(return_value=response)):
        with pytest.raises(WebhookDeliveryError) as exc_info:
            await N8nClient(WebhookConfig("https://n8n.example/hook")).post({"a": 1})

    assert exc_info.value.status_code == 500
    assert exc_info.value.details == "workflow crashed"
