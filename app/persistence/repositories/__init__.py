"""Repositories for data access."""

from app.persistence.repositories.app_setting_repository import AppSettingRepository
from app.persistence.repositories.base import BaseRepository
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.event_repository import EventRepository
from app.persistence.repositories.message_repository import MessageRepository
from app.persistence.repositories.score_repository import ScoreRepository

__all__ = [
    "AppSettingRepository",
    "BaseRepository",
    "ContactRepository",
    "EventRepository",
    "MessageRepository",
    "ScoreRepository",
]
