"""Score model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.persistence.database import Base

if TYPE_CHECKING:
    from app.persistence.models.contact import Contact


class Score(Base):
    """Lead score for a contact, fully recomputed by the scoring batch."""

    __tablename__ = "scores"

    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="CASCADE"), primary_key=True)
    score = Column(Integer, default=0, nullable=False, index=True)
    segment = Column(String(10), nullable=False, index=True)  # hot / warm / cold
    reasons = Column(JSON, default=list, nullable=False)  # ordered, one entry per scoring rule that fired
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    contact = relationship("Contact", back_populates="score")

    def __repr__(self) -> str:
        return f"<Score(contact_id={self.contact_id}, score={self.score}, segment={self.segment})>"
