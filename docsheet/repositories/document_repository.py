from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docsheet.database.models import Document
from docsheet.repositories.base_repository import BaseRepository
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentRepository(BaseRepository[Document]):
    """Repository for managing Document records.

    Inherits from BaseRepository for standard CRUD operations.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def get_with_rows(self, document_id: UUID) -> Optional[Document]:
        """Fetch a document together with its durable rows.

        Args:
            document_id: Document ID

        Returns:
            Document with `rows` loaded, or None if not found
        """
        try:
            # Bypass the identity map so storage-side timestamps are re-read
            result = await self.session.execute(
                select(Document)
                .where(Document.id == document_id)
                .options(selectinload(Document.rows))
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            LOGGER.error(f"Error loading document {document_id}: {str(e)}", exc_info=True)
            raise

    async def list_for_user(self, user_id: str) -> List[Document]:
        """List a user's documents, most recently updated first."""
        try:
            result = await self.session.execute(
                select(Document)
                .where(Document.user_id == user_id)
                .options(selectinload(Document.rows))
                .order_by(Document.updated_at.desc())
            )
            documents = list(result.scalars().all())
            LOGGER.info(
                f"Loaded {len(documents)} documents for user {user_id}",
                extra={"total_rows": sum(len(doc.rows) for doc in documents)},
            )
            return documents
        except SQLAlchemyError as e:
            LOGGER.error(f"Error listing documents for user {user_id}: {str(e)}", exc_info=True)
            raise
