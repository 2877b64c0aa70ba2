from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docsheet.database.models import Template
from docsheet.repositories.base_repository import BaseRepository
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemplateRepository(BaseRepository[Template]):
    """Repository for reusable field-schema templates."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Template)

    async def list_for_user(self, user_id: str) -> List[Template]:
        """List a user's templates, newest first."""
        try:
            result = await self.session.execute(
                select(Template)
                .where(Template.user_id == user_id)
                .order_by(Template.created_at.desc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Error listing templates for user {user_id}: {str(e)}", exc_info=True)
            raise
