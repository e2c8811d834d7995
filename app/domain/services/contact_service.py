"""Service for reading and editing contacts."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dob import normalize_dob
from app.core.phone import normalize_phone_with_fallbacks
from app.persistence.models.contact import Contact
from app.persistence.repositories.contact_repository import ContactRepository
from app.settings import settings

logger = logging.getLogger(__name__)


class ContactValidationError(ValueError):
    """A contact edit would break a contact invariant."""


class ContactService:
    """Contact edits with the same normalization as imports."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)

    async def update_contact(self, contact_id: str, changes: dict[str, Any]) -> Contact | None:
        """Apply a partial update.

        Phone numbers are normalized to E.164 and must stay unique; DOB is
        normalized to YYYY-MM-DD (unparseable DOB clears the field).

        Returns:
            Updated contact, or None if it does not exist

        Raises:
            ContactValidationError: Invalid or already used phone number
        """
        contact = await self.contact_repo.get_by_id(contact_id)
        if contact is None:
            return None

        if "phone_e164" in changes:
            phone = normalize_phone_with_fallbacks(changes["phone_e164"], settings.default_country_code)
            if not phone:
                raise ContactValidationError("Invalid phone number")
            other = await self.contact_repo.get_by_phone(phone)
            if other is not None and other.id != contact.id:
                raise ContactValidationError("Phone number already belongs to another contact")
            changes["phone_e164"] = phone

        if "dob" in changes:
            changes["dob"] = normalize_dob(changes["dob"])

        if "tags" in changes and changes["tags"] is not None:
            changes["tags"] = list(changes["tags"])

        return await self.contact_repo.update(contact_id, **changes)
