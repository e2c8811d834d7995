"""Contact model."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship

from app.persistence.database import Base

if TYPE_CHECKING:
    from app.persistence.models.score import Score


def generate_uuid() -> str:
    """Primary key default for UUID string ids."""
    return str(uuid.uuid4())


class Contact(Base):
    """Contact model representing a customer or lead reachable on WhatsApp."""

    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    full_name = Column(String(255), nullable=True)
    phone_e164 = Column(String(20), unique=True, nullable=False, index=True)
    source = Column(String(50), nullable=True, index=True)  # 'csv_import', 'referral', 'whatsapp_inbound', etc.
    tags = Column(JSON, default=list, nullable=False)

    # Opt-in (stored but not enforced unless CAMPAIGN_REQUIRE_OPT_IN is set)
    opt_in_status = Column(Boolean, default=False, nullable=False, index=True)
    opt_in_timestamp = Column(DateTime, nullable=True)
    opt_in_source = Column(String(50), nullable=True)

    # Kept as the raw imported string; may not be a parseable date
    last_purchase_at = Column(String(64), nullable=True)
    total_spend = Column(Numeric(12, 2), default=0, nullable=False)
    interest_type = Column(String(50), nullable=True)  # engagement / wedding / fashion / other
    dob = Column(String(10), nullable=True)  # YYYY-MM-DD

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    score = relationship("Score", back_populates="contact", uselist=False, cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, phone={self.phone_e164}, name={self.full_name})>"
