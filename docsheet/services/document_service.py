"""Document service for document and row management operations."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from docsheet.core.exceptions import AppError, DocumentNotFoundError, RowNotFoundError, ValidationError
from docsheet.schemas.documents import UNTITLED_DOCUMENT_NAME, Document, FileMetadata, PersistedRow
from docsheet.schemas.fields import Field
from docsheet.services.base_service import BaseService
from docsheet.services.extraction_simulator import ExtractionSimulator
from docsheet.services.field_schema import prepare_fields
from docsheet.services.store import DocumentStore
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


def validate_document_name(name: Optional[str]) -> str:
    """Return the trimmed name, rejecting blanks and the placeholder name."""
    cleaned = (name or "").strip()
    if not cleaned or cleaned == UNTITLED_DOCUMENT_NAME:
        raise ValidationError("Document name is required")
    return cleaned


class DocumentService(BaseService):
    """Service for document management operations.

    Handles document creation and updates with save-time validation,
    direct row writes and simulated extraction previews.
    """

    def __init__(self, store: DocumentStore, simulator: Optional[ExtractionSimulator] = None):
        super().__init__()
        self.store = store
        self.simulator = simulator or ExtractionSimulator()

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")
        if action == "create_document":
            validate_document_name(kwargs.get("name"))
        elif action == "update_document" and kwargs.get("name") is not None:
            validate_document_name(kwargs.get("name"))

    async def run(self, *args, **kwargs) -> Any:
        """Route to appropriate handler based on action."""
        action = kwargs.pop("action", None)

        if action == "create_document":
            return await self._create_document_logic(**kwargs)
        elif action == "update_document":
            return await self._update_document_logic(**kwargs)
        else:
            raise AppError(f"Unknown action: {action}")

    async def create_document(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
    ) -> Document:
        """Create a document with a validated field list and zero rows."""
        return await self.execute(
            action="create_document",
            user_id=user_id,
            name=name,
            fields=fields,
            description=description,
        )

    async def _create_document_logic(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
    ) -> Document:
        prepared = prepare_fields(fields)
        document = await self.store.create_document(
            user_id=user_id,
            name=validate_document_name(name),
            fields=prepared,
            description=description,
        )
        LOGGER.info(
            f"Document created: document_id={document.id}, fields={len(prepared)}",
            extra={"user_id": user_id},
        )
        return document

    async def update_document(
        self,
        document_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        fields: Optional[List[Field]] = None,
    ) -> Document:
        """Apply a partial update; a new field list is validated and re-indexed."""
        return await self.execute(
            action="update_document",
            document_id=document_id,
            name=name,
            description=description,
            fields=fields,
        )

    async def _update_document_logic(
        self,
        document_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        fields: Optional[List[Field]] = None,
    ) -> Document:
        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = validate_document_name(name)
        if description is not None:
            changes["description"] = description
        if fields is not None:
            changes["fields"] = prepare_fields(fields)

        if not changes:
            return await self.get_document(document_id)
        return await self.store.update_document(document_id, **changes)

    async def get_document(self, document_id: UUID) -> Document:
        document = await self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document with ID {document_id} not found")
        return document

    async def list_documents(self, user_id: str) -> List[Document]:
        return await self.store.get_documents(user_id)

    async def delete_document(self, document_id: UUID) -> bool:
        deleted = await self.store.delete_document(document_id)
        if deleted:
            LOGGER.info(f"Document deleted: document_id={document_id}")
        return deleted

    async def add_row(
        self,
        document_id: UUID,
        data: Dict[str, Any],
        file_metadata: Optional[FileMetadata] = None,
    ) -> PersistedRow:
        """Write a row straight to storage."""
        await self.get_document(document_id)
        return await self.store.create_row(document_id, data, file_metadata)

    async def _owned_row(self, document_id: UUID, row_id: UUID) -> PersistedRow:
        """Return the durable row only if it belongs to ``document_id``.

        Raises:
            DocumentNotFoundError: If the document does not exist
            RowNotFoundError: If the row is missing or owned by another document
        """
        document = await self.get_document(document_id)
        for row in document.rows:
            if row.id == row_id:
                return row
        raise RowNotFoundError(f"Row with ID {row_id} not found in document {document_id}")

    async def update_row(self, document_id: UUID, row_id: UUID, data: Dict[str, Any]) -> PersistedRow:
        await self._owned_row(document_id, row_id)
        return await self.store.update_row(row_id, data)

    async def delete_row(self, document_id: UUID, row_id: UUID) -> bool:
        await self._owned_row(document_id, row_id)
        return await self.store.delete_row(row_id)

    async def simulate_extraction(
        self,
        document_id: UUID,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Preview data for a file using the document's field schema."""
        document = await self.get_document(document_id)
        return self.simulator.simulate(document.fields, filename, mime_type)
