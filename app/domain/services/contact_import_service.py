"""Bulk contact import from CSV-mapped rows."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dob import normalize_dob
from app.core.phone import normalize_phone_with_fallbacks
from app.core.timestamps import parse_timestamp
from app.domain.exceptions import CampaignError
from app.infrastructure.n8n_client import N8nClient
from app.persistence.models.contact import Contact
from app.persistence.models.event import Event, EventType
from app.persistence.repositories.contact_repository import ContactRepository
from app.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_SOURCE = "csv_import"


class ImportRow(BaseModel):
    """One contact row after column mapping."""

    full_name: str | None = None
    phone_e164: str
    source: str | None = None
    tags: list[str] | str | None = None
    dob: str | None = None
    opt_in_status: bool | None = None
    opt_in_timestamp: str | None = None
    opt_in_source: str | None = None
    last_purchase_at: str | None = None
    total_spend: float | None = None
    interest_type: str | None = None


@dataclass
class ImportResult:
    import_batch_id: str
    imported: int = 0
    duplicates: int = 0
    invalid: int = 0
    total: int = 0
    contacts: list[Contact] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "imported": self.imported,
            "duplicates": self.duplicates,
            "invalid": self.invalid,
            "total": self.total,
        }


def _normalize_tags(tags: list[str] | str | None) -> list[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        return [tags]
    return [tag for tag in tags if tag]


def build_contact_fields(row: ImportRow, phone_e164: str) -> dict[str, Any]:
    """Map an import row to Contact column values."""
    return {
        "phone_e164": phone_e164,
        "full_name": row.full_name or None,
        "source": row.source or DEFAULT_IMPORT_SOURCE,
        "tags": _normalize_tags(row.tags),
        "dob": normalize_dob(row.dob),
        "opt_in_status": bool(row.opt_in_status),
        "opt_in_timestamp": parse_timestamp(row.opt_in_timestamp),
        "opt_in_source": row.opt_in_source or None,
        # stored verbatim; scoring and filters parse it leniently
        "last_purchase_at": (row.last_purchase_at or "").strip() or None,
        "total_spend": row.total_spend or 0,
        "interest_type": row.interest_type or None,
    }


class ContactImportService:
    """Creates contacts from imported rows, skipping invalid and duplicate phones."""

    def __init__(self, session: AsyncSession, n8n_client: N8nClient | None = None) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.n8n_client = n8n_client

    async def import_rows(self, rows: list[ImportRow]) -> ImportResult:
        """Import rows and record a csv_import event for each new contact.

        Returns:
            ImportResult with per-outcome counts and the created contacts
        """
        result = ImportResult(import_batch_id=str(uuid.uuid4()), total=len(rows))

        normalized: list[tuple[ImportRow, str]] = []
        for row in rows:
            phone = normalize_phone_with_fallbacks(row.phone_e164, settings.default_country_code)
            if not phone:
                result.invalid += 1
                continue
            normalized.append((row, phone))

        existing = await self.contact_repo.get_existing_phones(phone for _, phone in normalized)
        seen: set[str] = set()

        for row, phone in normalized:
            if phone in existing or phone in seen:
                result.duplicates += 1
                continue
            seen.add(phone)

            contact = Contact(**build_contact_fields(row, phone))
            self.session.add(contact)
            await self.session.flush()
            self.session.add(
                Event(
                    contact_id=contact.id,
                    type=EventType.CSV_IMPORT,
                    meta={"import_batch_id": result.import_batch_id, "source_file": "csv_upload"},
                )
            )
            result.contacts.append(contact)

        await self.session.commit()
        result.imported = len(result.contacts)

        logger.info(
            f"Import {result.import_batch_id}: imported={result.imported}, "
            f"duplicates={result.duplicates}, invalid={result.invalid}, total={result.total}"
        )

        if result.contacts:
            await self._notify_import(result)

        return result

    async def _notify_import(self, result: ImportResult) -> None:
        client = self.n8n_client or await N8nClient.from_session(self.session)
        if not client.is_configured:
            return

        contacts = [
            {"id": c.id, "phone_e164": c.phone_e164, "full_name": c.full_name}
            for c in result.contacts
        ]
        try:
            await client.trigger_import(result.import_batch_id, contacts)
        except CampaignError as e:
            # The import itself already succeeded
            logger.error(f"Error triggering n8n import webhook for batch {result.import_batch_id}: {e}")
