"""WhatsApp message model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from app.persistence.models.contact import generate_uuid
from app.persistence.database import Base


class Message(Base):
    """Inbound or outbound WhatsApp message relayed by the bridge."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=True, index=True)
    phone_e164 = Column(String(20), nullable=True, index=True)
    direction = Column(String(3), nullable=False, index=True)  # in / out
    template_name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, index=True)  # sent / delivered / failed / read / received
    provider_message_id = Column(String(255), unique=True, nullable=True)
    body = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, contact_id={self.contact_id}, direction={self.direction}, status={self.status})>"
