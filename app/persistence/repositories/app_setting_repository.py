"""Application setting repository."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.app_setting import AppSetting
from app.persistence.repositories.base import BaseRepository


class AppSettingRepository(BaseRepository[AppSetting]):
    """Repository for key/value AppSetting entities."""

    def __init__(self, session: AsyncSession):
        """Initialize setting repository."""
        super().__init__(AppSetting, session)

    async def get_value(self, key: str) -> Any | None:
        """Get a setting's JSON value, or None if unset."""
        setting = await self.get_by_id(key)
        return setting.value if setting else None

    async def set_value(self, key: str, value: Any) -> AppSetting:
        """Create or replace a setting."""
        setting = await self.get_by_id(key)
        if setting is None:
            return await self.create(key=key, value=value)
        return await self.update(key, value=value)
