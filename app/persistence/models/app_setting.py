"""Key/value application settings model."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String

from app.persistence.database import Base

N8N_WEBHOOK_URL_KEY = "n8n_webhook_url"


class AppSetting(Base):
    """Runtime setting editable from the admin UI (e.g. the n8n webhook)."""

    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<AppSetting(key={self.key})>"
