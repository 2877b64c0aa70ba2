from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docsheet.database.models import UserSettings
from docsheet.repositories.base_repository import BaseRepository
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


class UserSettingsRepository(BaseRepository[UserSettings]):
    """Repository for per-owner configuration records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, UserSettings)

    async def get_by_owner(self, user_id: str) -> Optional[UserSettings]:
        """Fetch the configuration record of an owner, if any."""
        try:
            result = await self.session.execute(
                select(UserSettings).where(UserSettings.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            LOGGER.error(f"Error loading settings for {user_id}: {str(e)}", exc_info=True)
            raise

    async def upsert(self, user_id: str, **values) -> UserSettings:
        """Create the owner's record or update it in place."""
        existing = await self.get_by_owner(user_id)
        if existing is None:
            LOGGER.info(f"Creating settings record for {user_id}")
            return await self.create(user_id=user_id, **values)
        return await self.update(existing.id, **values)
