"""Storage interface consumed by the reconciliation and template logic.

``DocumentStore`` is the narrow CRUD surface the core depends on;
``SqlDocumentStore`` implements it with the SQLAlchemy repositories.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from docsheet.core.config import settings
from docsheet.core.exceptions import (
    DatabaseError,
    DocumentNotFoundError,
    RowNotFoundError,
    TemplateNotFoundError,
)
from docsheet.database import models
from docsheet.repositories import (
    DocumentRepository,
    DocumentRowRepository,
    TemplateRepository,
    UserSettingsRepository,
)
from docsheet.schemas.documents import Document, FileMetadata, PersistedRow, Template
from docsheet.schemas.fields import Field
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

# Errors worth another attempt: lost connections and pool exhaustion
TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class DocumentStore(ABC):
    """Opaque relational store for documents, rows, templates and settings."""

    @abstractmethod
    async def get_document(self, document_id: UUID) -> Optional[Document]:
        """Return the document with its durable rows, or None if missing."""

    @abstractmethod
    async def get_documents(self, user_id: str) -> List[Document]:
        pass

    @abstractmethod
    async def create_document(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
    ) -> Document:
        pass

    @abstractmethod
    async def update_document(self, document_id: UUID, **changes: Any) -> Document:
        pass

    @abstractmethod
    async def delete_document(self, document_id: UUID) -> bool:
        pass

    @abstractmethod
    async def create_row(
        self,
        document_id: UUID,
        data: Dict[str, Any],
        file_metadata: Optional[FileMetadata] = None,
    ) -> PersistedRow:
        pass

    @abstractmethod
    async def update_row(self, row_id: UUID, data: Dict[str, Any]) -> PersistedRow:
        pass

    @abstractmethod
    async def delete_row(self, row_id: UUID) -> bool:
        pass

    @abstractmethod
    async def get_templates(self, user_id: str) -> List[Template]:
        pass

    @abstractmethod
    async def get_template(self, template_id: UUID) -> Optional[Template]:
        pass

    @abstractmethod
    async def create_template(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Template:
        pass

    @abstractmethod
    async def update_template(self, template_id: UUID, **changes: Any) -> Template:
        pass

    @abstractmethod
    async def delete_template(self, template_id: UUID) -> bool:
        pass

    @abstractmethod
    async def get_settings(self, owner_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def upsert_settings(self, owner_id: str, **values: Any) -> Dict[str, Any]:
        pass


def _dump_fields(fields: List[Field]) -> List[Dict[str, Any]]:
    return [field.model_dump(mode="json") for field in fields]


def _to_row(row: models.DocumentRow) -> PersistedRow:
    return PersistedRow(
        id=row.id,
        document_id=row.document_id,
        data=row.data or {},
        file_metadata=row.file_metadata,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_document(document: models.Document, rows: Optional[List[models.DocumentRow]] = None) -> Document:
    return Document(
        id=document.id,
        name=document.name,
        description=document.description,
        user_id=document.user_id,
        fields=document.fields or [],
        rows=[_to_row(row) for row in rows or []],
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def _to_template(template: models.Template) -> Template:
    return Template(
        id=template.id,
        name=template.name,
        description=template.description,
        category=template.category,
        user_id=template.user_id,
        fields=template.fields or [],
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


class SqlDocumentStore(DocumentStore):
    """DocumentStore backed by the SQLAlchemy repositories.

    Repository failures surface as ``DatabaseError`` so callers can leave
    their local state untouched. Transient failures are retried first.
    """

    def __init__(
        self,
        session: AsyncSession,
        max_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
    ):
        self.session = session
        self.documents = DocumentRepository(session)
        self.rows = DocumentRowRepository(session)
        self.templates = TemplateRepository(session)
        self.user_settings = UserSettingsRepository(session)
        self.max_retries = max(1, max_retries if max_retries is not None else settings.db.max_retries)
        self.retry_delay = (
            retry_delay_seconds if retry_delay_seconds is not None else settings.db.retry_delay_seconds
        )

    async def _execute(self, message: str, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run a repository call, retrying transient database errors.

        Raises:
            DatabaseError: On a non-transient error, or once retries run out
        """
        for attempt in range(self.max_retries):
            try:
                return await operation(*args, **kwargs)
            except TRANSIENT_ERRORS as e:
                LOGGER.warning(
                    f"Transient database error (Attempt {attempt + 1}/{self.max_retries})",
                    extra={"operation": message, "error": str(e)},
                )
                await self._rollback()
                if attempt < self.max_retries - 1:
                    await self._wait_before_retry(attempt)
                else:
                    raise DatabaseError(f"{message} after {self.max_retries} attempts", original_error=e)
            except SQLAlchemyError as e:
                raise DatabaseError(message, original_error=e)

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            LOGGER.warning(f"Rollback before retry failed: {str(e)}")

    async def _wait_before_retry(self, attempt: int) -> None:
        """Linear backoff wait."""
        await asyncio.sleep(self.retry_delay * (attempt + 1))

    async def get_document(self, document_id: UUID) -> Optional[Document]:
        document = await self._execute(
            f"Failed to load document {document_id}", self.documents.get_with_rows, document_id
        )
        if document is None:
            return None
        return _to_document(document, document.rows)

    async def get_documents(self, user_id: str) -> List[Document]:
        documents = await self._execute(
            f"Failed to list documents for {user_id}", self.documents.list_for_user, user_id
        )
        return [_to_document(document, document.rows) for document in documents]

    async def create_document(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
    ) -> Document:
        document = await self._execute(
            "Failed to create document",
            self.documents.create,
            user_id=user_id,
            name=name,
            description=description,
            fields=_dump_fields(fields),
        )
        LOGGER.info("Document created", extra={"document_id": str(document.id), "user_id": user_id})
        return _to_document(document)

    async def update_document(self, document_id: UUID, **changes: Any) -> Document:
        if "fields" in changes:
            changes["fields"] = _dump_fields(changes["fields"])
        updated = await self._execute(
            f"Failed to update document {document_id}", self.documents.update, document_id, **changes
        )
        if updated is None:
            raise DocumentNotFoundError(f"Document with ID {document_id} not found")
        return await self.get_document(document_id)

    async def delete_document(self, document_id: UUID) -> bool:
        return await self._execute(
            f"Failed to delete document {document_id}", self.documents.delete, document_id
        )

    async def create_row(
        self,
        document_id: UUID,
        data: Dict[str, Any],
        file_metadata: Optional[FileMetadata] = None,
    ) -> PersistedRow:
        row = await self._execute(
            f"Failed to create row for document {document_id}",
            self.rows.create_row,
            document_id=document_id,
            data=data,
            file_metadata=file_metadata.model_dump(mode="json") if file_metadata else None,
        )
        return _to_row(row)

    async def update_row(self, row_id: UUID, data: Dict[str, Any]) -> PersistedRow:
        row = await self._execute(f"Failed to update row {row_id}", self.rows.update, row_id, data=data)
        if row is None:
            raise RowNotFoundError(f"Row with ID {row_id} not found")
        return _to_row(row)

    async def delete_row(self, row_id: UUID) -> bool:
        return await self._execute(f"Failed to delete row {row_id}", self.rows.delete, row_id)

    async def get_templates(self, user_id: str) -> List[Template]:
        templates = await self._execute(
            f"Failed to list templates for {user_id}", self.templates.list_for_user, user_id
        )
        return [_to_template(template) for template in templates]

    async def get_template(self, template_id: UUID) -> Optional[Template]:
        template = await self._execute(
            f"Failed to load template {template_id}", self.templates.get_by_id, template_id
        )
        return _to_template(template) if template else None

    async def create_template(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Template:
        template = await self._execute(
            "Failed to create template",
            self.templates.create,
            user_id=user_id,
            name=name,
            description=description,
            category=category,
            fields=_dump_fields(fields),
        )
        return _to_template(template)

    async def update_template(self, template_id: UUID, **changes: Any) -> Template:
        if "fields" in changes:
            changes["fields"] = _dump_fields(changes["fields"])
        template = await self._execute(
            f"Failed to update template {template_id}", self.templates.update, template_id, **changes
        )
        if template is None:
            raise TemplateNotFoundError(f"Template with ID {template_id} not found")
        return _to_template(template)

    async def delete_template(self, template_id: UUID) -> bool:
        return await self._execute(
            f"Failed to delete template {template_id}", self.templates.delete, template_id
        )

    async def get_settings(self, owner_id: str) -> Optional[Dict[str, Any]]:
        record = await self._execute(
            f"Failed to load settings for {owner_id}", self.user_settings.get_by_owner, owner_id
        )
        if record is None:
            return None
        return {"user_id": record.user_id, "api_endpoint": record.api_endpoint}

    async def upsert_settings(self, owner_id: str, **values: Any) -> Dict[str, Any]:
        record = await self._execute(
            f"Failed to save settings for {owner_id}", self.user_settings.upsert, owner_id, **values
        )
        return {"user_id": record.user_id, "api_endpoint": record.api_endpoint}
