"""Contact event model."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from app.persistence.models.contact import generate_uuid
from app.persistence.database import Base


class EventType:
    """Contact event types."""

    CSV_IMPORT = "csv_import"
    PURCHASE = "purchase"
    INQUIRY = "inquiry"
    WHATSAPP_INBOUND = "whatsapp_inbound"
    WHATSAPP_OUTBOUND = "whatsapp_outbound"


class Event(Base):
    """Audit trail entry for something that happened to a contact."""

    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(30), nullable=False, index=True)
    meta = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, contact_id={self.contact_id}, type={self.type})>"
