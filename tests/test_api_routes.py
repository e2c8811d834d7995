"""Tests for API endpoints."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.api.deps import get_n8n_client
from app.core.timestamps import utcnow
from app.domain.exceptions import WebhookDeliveryError, WebhookNotConfiguredError
from app.infrastructure.n8n_client import N8nClient
from app.persistence.models.message import Message

API = "/api/v1"


def _override_client(mock_client):
    from app.main import app

    app.dependency_overrides[get_n8n_client] = lambda: mock_client


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_list_contacts_with_search_and_segment(client, make_contact):
    await make_contact(full_name="Mei Chan", segment="hot", score=70)
    await make_contact(full_name="Ka Yan", segment="cold", score=5)

    response = await client.get(f"{API}/contacts", params={"search": "mei"})
    assert response.status_code == 200
    assert [c["full_name"] for c in response.json()["contacts"]] == ["Mei Chan"]

    response = await client.get(f"{API}/contacts", params={"segment": "cold"})
    assert response.json()["total"] == 1
    assert response.json()["contacts"][0]["full_name"] == "Ka Yan"


@pytest.mark.asyncio
async def test_get_missing_contact(client):
    response = await client.get(f"{API}/contacts/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_patch_contact_normalizes_fields(client, make_contact):
    contact = await make_contact()

    response = await client.patch(
        f"{API}/contacts/{contact.id}",
        json={"phone_e164": "6123 4567", "dob": "25/12/1990", "tags": ["vip"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["phone_e164"] == "+85261234567"
    assert body["dob"] == "1990-12-25"
    assert body["dob_display"] == "1990-12-25"
    assert body["tags"] == ["vip"]

    fetched = (await client.get(f"{API}/contacts/{contact.id}")).json()
    assert fetched["phone_e164"] == "+85261234567"


@pytest.mark.asyncio
async def test_patch_contact_rejects_taken_phone(client, make_contact):
    await make_contact(phone_e164="+85261234567")
    contact = await make_contact()

    response = await client.patch(f"{API}/contacts/{contact.id}", json={"phone_e164": "61234567"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_scoring_run_and_contact_score(client, make_contact):
    contact = await make_contact(tags=["inquiry_7d"], interest_type="engagement")

    response = await client.post(f"{API}/scoring/run", json={})
    assert response.status_code == 200
    assert response.json()["scored"] == 1

    score = (await client.get(f"{API}/contacts/{contact.id}/score")).json()
    assert score["score"] == 60
    assert score["segment"] == "hot"
    assert score["reasons"] == ["Recent inquiry/visit (7d)", "Engagement interest"]

    last = (await client.get(f"{API}/scoring/last-computed")).json()
    assert last["last_computed_at"] is not None


@pytest.mark.asyncio
async def test_scoring_run_without_contacts(client):
    response = await client.post(f"{API}/scoring/run")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_eligible_count_endpoints(client, make_contact):
    await make_contact(segment="warm", score=40, interest_type="wedding")
    await make_contact(segment="warm", score=40, interest_type="engagement")

    response = await client.get(f"{API}/campaigns/eligible-count", params={"segment": "warm"})
    assert response.json()["count"] == 2
    assert response.json()["segment_total"] == 2

    response = await client.post(
        f"{API}/campaigns/eligible-count",
        json={"segment": "warm", "filters": {"interestTypes": ["wedding"]}},
    )
    body = response.json()
    assert (body["segment_total"], body["after_filters"], body["sendable"]) == (2, 1, 1)


@pytest.mark.asyncio
async def test_eligible_count_rejects_unknown_segment(client):
    response = await client.get(f"{API}/campaigns/eligible-count", params={"segment": "lukewarm"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_filtered_contacts_newest_first(client, make_contact):
    older = await make_contact(segment="cold", created_at=datetime(2025, 1, 1))
    newer = await make_contact(segment="cold", created_at=datetime(2025, 2, 1))

    response = await client.post(f"{API}/campaigns/filtered-contacts", json={"segment": "cold"})

    assert [c["id"] for c in response.json()["contacts"]] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_trigger_campaign(client, make_contact):
    contact = await make_contact(segment="hot", score=80)
    mock_client = MagicMock(spec=N8nClient)
    mock_client.send_campaign = AsyncMock(return_value={"status": "queued"})
    _override_client(mock_client)

    response = await client.post(
        f"{API}/campaigns/trigger",
        json={"segment": "hot", "template_name": "vip_preview"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["sent"] == 1
    assert body["contact_ids"] == [contact.id]
    assert body["n8n_response"] == {"status": "queued"}


@pytest.mark.asyncio
async def test_trigger_campaign_validation(client):
    _override_client(MagicMock(spec=N8nClient))
    response = await client.post(f"{API}/campaigns/trigger", json={"segment": "hot"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_trigger_campaign_without_webhook(client, make_contact):
    await make_contact(segment="cold")
    mock_client = MagicMock(spec=N8nClient)
    mock_client.send_campaign = AsyncMock(side_effect=WebhookNotConfiguredError())
    _override_client(mock_client)

    response = await client.post(f"{API}/campaigns/trigger", json={"segment": "cold", "manual_message": "Hi"})

    assert response.status_code == 400
    assert response.json()["detail"] == "n8n webhook URL not configured"


@pytest.mark.asyncio
async def test_trigger_campaign_webhook_failure(client, make_contact):
    await make_contact(segment="cold")
    mock_client = MagicMock(spec=N8nClient)
    mock_client.send_campaign = AsyncMock(
        side_effect=WebhookDeliveryError("Failed to trigger n8n webhook", details="bad gateway", status_code=502)
    )
    _override_client(mock_client)

    response = await client.post(f"{API}/campaigns/trigger", json={"segment": "cold", "manual_message": "Hi"})

    assert response.status_code == 502
    body = response.json()
    assert body["details"] == "bad gateway"
    assert body["retry_after_seconds"] == 30
    assert response.headers["Retry-After"] == "30"


@pytest.mark.asyncio
async def test_trigger_campaign_rate_limited_by_provider(client, make_contact):
    await make_contact(segment="cold")
    mock_client = MagicMock(spec=N8nClient)
    mock_client.send_campaign = AsyncMock(
        side_effect=WebhookDeliveryError(
            "Failed to trigger n8n webhook", details={"message": "Rate limit hit"}, status_code=429
        )
    )
    _override_client(mock_client)

    response = await client.post(f"{API}/campaigns/trigger", json={"segment": "cold", "manual_message": "Hi"})

    assert response.status_code == 502
    assert response.json()["error_type"] == "Rate limit exceeded - backing off"
    assert response.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_trigger_campaign_quota_exceeded(client, db_session, make_contact, monkeypatch):
    from app.settings import settings

    monkeypatch.setattr(settings, "whatsapp_max_messages_per_hour", 1)
    contact = await make_contact(segment="cold")
    db_session.add(Message(contact_id=contact.id, direction="out", status="sent", created_at=utcnow()))
    await db_session.commit()
    _override_client(MagicMock(spec=N8nClient))

    response = await client.post(f"{API}/campaigns/trigger", json={"segment": "cold", "manual_message": "Hi"})

    assert response.status_code == 429
    body = response.json()
    assert (body["sent"], body["limit"], body["remaining"]) == (1, 1, 0)
    assert body["resetAt"].endswith("Z")


@pytest.mark.asyncio
async def test_csv_import(client):
    _override_client(MagicMock(spec=N8nClient, is_configured=False))

    response = await client.post(
        f"{API}/csv/import",
        json={"contacts": [{"phone_e164": "91234567", "tags": ["vip"]}, {"phone_e164": "bad"}]},
    )

    assert response.status_code == 200
    assert response.json()["counts"] == {"imported": 1, "duplicates": 0, "invalid": 1, "total": 2}


@pytest.mark.asyncio
async def test_whatsapp_inbound_webhook(client):
    response = await client.post(
        f"{API}/whatsapp/webhook",
        json=[{"from": "+852 9123 4567", "message": "Is the ring available?", "message_id": "wamid.7"}],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["phone_e164"] == "+85291234567"
    assert body["contact_id"]

    events = (await client.get(f"{API}/contacts/{body['contact_id']}/events")).json()
    assert [e["type"] for e in events] == ["whatsapp_inbound"]


@pytest.mark.asyncio
async def test_whatsapp_webhook_requires_phone(client):
    response = await client.post(f"{API}/whatsapp/webhook", json={"body": "hi"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_whatsapp_outbound_dedupes(client):
    payload = {"phone_e164": "+85291234567", "body": "Thanks!", "message_id": "wamid.8"}

    first = (await client.post(f"{API}/whatsapp/outbound", json=payload)).json()
    second = (await client.post(f"{API}/whatsapp/outbound", json=payload)).json()

    assert not first["duplicate"]
    assert second["duplicate"]


@pytest.mark.asyncio
async def test_webhook_settings(client):
    assert (await client.get(f"{API}/settings/n8n-webhook")).json() == {"url": "", "has_secret": False}

    response = await client.put(
        f"{API}/settings/n8n-webhook",
        json={"url": "https://n8n.example/webhook/send", "secret": "s3cret"},
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://n8n.example/webhook/send", "has_secret": True}


@pytest.mark.asyncio
async def test_inbox_endpoints(client):
    inbound = await client.post(
        f"{API}/whatsapp/webhook",
        json={"from": "+852 9123 4567", "body": "Do you resize rings?", "message_id": "wamid.20"},
    )
    contact_id = inbound.json()["contact_id"]

    assert (await client.get(f"{API}/messages/unread-count")).json() == {"unread_count": 1}

    conversations = (await client.get(f"{API}/messages/conversations")).json()["conversations"]
    assert len(conversations) == 1
    assert conversations[0]["conversation_key"] == contact_id
    assert conversations[0]["contact"]["phone_e164"] == "+85291234567"
    assert conversations[0]["latest_message"]["body"] == "Do you resize rings?"
    assert conversations[0]["unread_count"] == 1

    thread = (await client.get(f"{API}/messages/{contact_id}")).json()["messages"]
    assert [m["direction"] for m in thread] == ["in"]

    response = await client.post(f"{API}/messages/{contact_id}/read")
    assert response.json() == {"success": True, "updated": 1}
    assert (await client.get(f"{API}/messages/unread-count")).json() == {"unread_count": 0}


@pytest.mark.asyncio
async def test_send_message_endpoint(client, make_contact):
    contact = await make_contact()
    mock_client = MagicMock(spec=N8nClient, is_configured=True)
    mock_client.send_message = AsyncMock(return_value={"success": True, "message_id": "wamid.30"})
    _override_client(mock_client)

    response = await client.post(f"{API}/messages/{contact.id}", json={"body": "Your ring is ready"})

    assert response.status_code == 200
    assert response.json()["message"]["status"] == "delivered"

    messages = (await client.get(f"{API}/contacts/{contact.id}/messages")).json()["messages"]
    assert [m["provider_message_id"] for m in messages] == ["wamid.30"]


@pytest.mark.asyncio
async def test_send_message_unknown_contact(client):
    _override_client(MagicMock(spec=N8nClient, is_configured=False))

    response = await client.post(f"{API}/messages/missing", json={"body": "Hi"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_message_requires_body(client, make_contact):
    contact = await make_contact()
    _override_client(MagicMock(spec=N8nClient, is_configured=False))

    response = await client.post(f"{API}/messages/{contact.id}", json={"body": ""})

    assert response.status_code == 422
