"""Database models."""

from app.persistence.models.app_setting import AppSetting
from app.persistence.models.contact import Contact
from app.persistence.models.event import Event, EventType
from app.persistence.models.message import Message
from app.persistence.models.score import Score

__all__ = [
    "AppSetting",
    "Contact",
    "Event",
    "EventType",
    "Message",
    "Score",
]
