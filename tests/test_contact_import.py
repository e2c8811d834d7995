"""Tests for contact import and WhatsApp message ingestion."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.exceptions import WebhookDeliveryError
from app.domain.services.contact_import_service import ContactImportService, ImportRow
from app.domain.services.message_ingestion_service import MessageIngestionService
from app.persistence.models.event import EventType
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.event_repository import EventRepository
from app.persistence.repositories.message_repository import MessageRepository


def _unconfigured_client():
    client = MagicMock()
    client.is_configured = False
    client.trigger_import = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_import_counts_and_normalizes(db_session, make_contact):
    await make_contact(phone_e164="+85291110000")
    rows = [
        ImportRow(
            full_name="Mei Chan",
            phone_e164="9123 4567",
            tags="vip",
            dob="25/12/1990",
            opt_in_status=True,
            opt_in_timestamp="2025-01-02T03:04:05Z",
            last_purchase_at="  2025-03-01  ",
            total_spend=5200,
            interest_type="engagement",
        ),
        ImportRow(phone_e164="+852 9111 0000"),  # already stored
        ImportRow(phone_e164="91234567"),  # same as the first row
        ImportRow(phone_e164="12"),
        ImportRow(phone_e164="6123 9876", dob="not a date", opt_in_timestamp="whenever", source="referral"),
    ]

    result = await ContactImportService(db_session, n8n_client=_unconfigured_client()).import_rows(rows)

    assert result.counts == {"imported": 2, "duplicates": 2, "invalid": 1, "total": 5}

    repo = ContactRepository(db_session)
    mei = await repo.get_by_phone("+85291234567")
    assert mei.full_name == "Mei Chan"
    assert mei.tags == ["vip"]
    assert mei.dob == "1990-12-25"
    assert mei.source == "csv_import"
    assert mei.opt_in_status is True
    assert mei.opt_in_timestamp == datetime(2025, 1, 2, 3, 4, 5)
    assert mei.last_purchase_at == "2025-03-01"

    other = await repo.get_by_phone("+85261239876")
    assert other.dob is None
    assert other.opt_in_timestamp is None
    assert other.source == "referral"


@pytest.mark.asyncio
async def test_import_records_batch_events(db_session):
    result = await ContactImportService(db_session, n8n_client=_unconfigured_client()).import_rows(
        [ImportRow(phone_e164="91234567"), ImportRow(phone_e164="92345678")]
    )

    event_repo = EventRepository(db_session)
    for contact in result.contacts:
        events = await event_repo.list_for_contact(contact.id)
        assert len(events) == 1
        assert events[0].type == EventType.CSV_IMPORT
        assert events[0].meta == {"import_batch_id": result.import_batch_id, "source_file": "csv_upload"}


@pytest.mark.asyncio
async def test_import_notifies_workflow(db_session):
    client = MagicMock()
    client.is_configured = True
    client.trigger_import = AsyncMock(return_value={"ok": True})

    result = await ContactImportService(db_session, n8n_client=client).import_rows(
        [ImportRow(phone_e164="91234567", full_name="Ka Yan")]
    )

    client.trigger_import.assert_awaited_once()
    batch_id, contacts = client.trigger_import.await_args.args
    assert batch_id == result.import_batch_id
    assert contacts == [{"id": result.contacts[0].id, "phone_e164": "+85291234567", "full_name": "Ka Yan"}]


@pytest.mark.asyncio
async def test_import_survives_workflow_failure(db_session):
    client = MagicMock()
    client.is_configured = True
    client.trigger_import = AsyncMock(side_effect=WebhookDeliveryError("Failed to trigger n8n webhook"))

    result = await ContactImportService(db_session, n8n_client=client).import_rows([ImportRow(phone_e164="91234567")])

    assert result.imported == 1
    assert await ContactRepository(db_session).get_by_phone("+85291234567") is not None


@pytest.mark.asyncio
async def test_import_without_valid_rows_skips_notification(db_session):
    client = _unconfigured_client()
    result = await ContactImportService(db_session, n8n_client=client).import_rows([ImportRow(phone_e164="x")])

    assert result.counts == {"imported": 0, "duplicates": 0, "invalid": 1, "total": 1}
    client.trigger_import.assert_not_awaited()


# ============== Message ingestion ==============

@pytest.mark.asyncio
async def test_inbound_creates_contact_and_event(db_session):
    result = await MessageIngestionService(db_session).record_inbound(
        "+852 9876 5432", "Hi, do you have this ring in size 12?", provider_message_id="wamid.1", full_name="Ada"
    )

    assert result.contact_created
    contact = await ContactRepository(db_session).get_by_phone("+85298765432")
    assert contact.source == "whatsapp_inbound"
    assert contact.opt_in_status is True
    assert contact.full_name == "Ada"

    message = await MessageRepository(db_session).get_by_provider_id("wamid.1")
    assert message.direction == "in"
    assert message.status == "received"
    assert message.contact_id == contact.id

    events = await EventRepository(db_session).list_for_contact(contact.id)
    assert [e.type for e in events] == [EventType.WHATSAPP_INBOUND]


@pytest.mark.asyncio
async def test_inbound_touches_existing_contact(db_session, make_contact):
    contact = await make_contact(phone_e164="+85298765432", updated_at=datetime(2020, 1, 1))

    result = await MessageIngestionService(db_session).record_inbound("98765432", "hello")

    assert not result.contact_created
    assert result.contact_id == contact.id
    await db_session.refresh(contact)
    assert contact.updated_at > datetime(2020, 1, 1)


@pytest.mark.asyncio
async def test_outbound_is_deduplicated(db_session):
    service = MessageIngestionService(db_session)

    first = await service.record_outbound("+85298765432", "Our new collection", provider_message_id="wamid.9")
    second = await service.record_outbound("+85298765432", "Our new collection", provider_message_id="wamid.9")

    assert not first.duplicate
    assert second.duplicate
    assert second.message_id == first.message_id
    contact = await ContactRepository(db_session).get_by_phone("+85298765432")
    assert contact.source == "whatsapp_outbound"


@pytest.mark.asyncio
async def test_inbound_with_invalid_phone_stays_unlinked(db_session):
    result = await MessageIngestionService(db_session).record_inbound("12", "hi", provider_message_id="wamid.2")

    assert result.contact_id is None
    assert not result.contact_created
    assert await ContactRepository(db_session).get_by_phone("12") is None

    message = await MessageRepository(db_session).get_by_provider_id("wamid.2")
    assert message.phone_e164 == "12"
    assert message.contact_id is None


@pytest.mark.asyncio
async def test_outbound_with_invalid_phone_stays_unlinked(db_session):
    result = await MessageIngestionService(db_session).record_outbound("12", "Thanks", provider_message_id="wamid.3")

    assert result.contact_id is None
    assert await ContactRepository(db_session).get_by_phone("12") is None
