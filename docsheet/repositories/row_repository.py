from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from docsheet.database.models import DocumentRow
from docsheet.repositories.base_repository import BaseRepository


class DocumentRowRepository(BaseRepository[DocumentRow]):
    """Repository for durable document rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentRow)

    async def create_row(
        self,
        document_id: UUID,
        data: Dict[str, Any],
        file_metadata: Optional[Dict[str, Any]] = None,
    ) -> DocumentRow:
        """Insert a row for a document.

        Args:
            document_id: Owning document
            data: Field-name to value mapping
            file_metadata: Metadata of the uploaded file the row came from

        Returns:
            Created DocumentRow record
        """
        return await self.create(
            document_id=document_id,
            data=data or {},
            file_metadata=file_metadata,
        )
