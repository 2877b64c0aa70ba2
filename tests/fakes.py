"""In-memory DocumentStore used by service and API tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from docsheet.core.exceptions import (
    DatabaseError,
    DocumentNotFoundError,
    RowNotFoundError,
    TemplateNotFoundError,
)
from docsheet.schemas.documents import Document, FileMetadata, PersistedRow, Template
from docsheet.schemas.fields import Field
from docsheet.services.store import DocumentStore


class InMemoryDocumentStore(DocumentStore):
    """Keeps everything in dicts and counts storage calls.

    Set ``fail_create_row`` to make the next ``create_row`` calls raise.
    """

    def __init__(self):
        self.documents: Dict[UUID, Document] = {}
        self.rows: Dict[UUID, PersistedRow] = {}
        self.templates: Dict[UUID, Template] = {}
        self.settings: Dict[str, Dict[str, Any]] = {}
        self.fail_create_row = False
        self.calls: List[str] = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        # Strictly increasing so ordering by created_at is stable
        self._clock += timedelta(seconds=1)
        return self._clock

    async def get_document(self, document_id: UUID) -> Optional[Document]:
        self.calls.append("get_document")
        document = self.documents.get(document_id)
        if document is None:
            return None
        rows = sorted(
            (row for row in self.rows.values() if row.document_id == document_id),
            key=lambda row: row.created_at,
        )
        return document.model_copy(update={"rows": rows}, deep=True)

    async def get_documents(self, user_id: str) -> List[Document]:
        self.calls.append("get_documents")
        return [
            await self.get_document(document.id)
            for document in self.documents.values()
            if document.user_id == user_id
        ]

    async def create_document(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
    ) -> Document:
        self.calls.append("create_document")
        now = self._now()
        document = Document(
            id=uuid4(),
            name=name,
            description=description,
            user_id=user_id,
            fields=[field.model_copy(deep=True) for field in fields],
            created_at=now,
            updated_at=now,
        )
        self.documents[document.id] = document
        return document.model_copy(deep=True)

    async def update_document(self, document_id: UUID, **changes: Any) -> Document:
        self.calls.append("update_document")
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document with ID {document_id} not found")
        self.documents[document_id] = document.model_copy(update={**changes, "updated_at": self._now()})
        return await self.get_document(document_id)

    async def delete_document(self, document_id: UUID) -> bool:
        self.calls.append("delete_document")
        if self.documents.pop(document_id, None) is None:
            return False
        self.rows = {key: row for key, row in self.rows.items() if row.document_id != document_id}
        return True

    async def create_row(
        self,
        document_id: UUID,
        data: Dict[str, Any],
        file_metadata: Optional[FileMetadata] = None,
    ) -> PersistedRow:
        self.calls.append("create_row")
        if self.fail_create_row:
            raise DatabaseError("Failed to create row")
        if document_id not in self.documents:
            raise DocumentNotFoundError(f"Document with ID {document_id} not found")
        now = self._now()
        row = PersistedRow(
            id=uuid4(),
            document_id=document_id,
            data=dict(data),
            file_metadata=file_metadata,
            created_at=now,
            updated_at=now,
        )
        self.rows[row.id] = row
        return row.model_copy(deep=True)

    async def update_row(self, row_id: UUID, data: Dict[str, Any]) -> PersistedRow:
        self.calls.append("update_row")
        row = self.rows.get(row_id)
        if row is None:
            raise RowNotFoundError(f"Row with ID {row_id} not found")
        self.rows[row_id] = row.model_copy(update={"data": dict(data), "updated_at": self._now()})
        return self.rows[row_id].model_copy(deep=True)

    async def delete_row(self, row_id: UUID) -> bool:
        self.calls.append("delete_row")
        return self.rows.pop(row_id, None) is not None

    async def get_templates(self, user_id: str) -> List[Template]:
        self.calls.append("get_templates")
        return [
            template.model_copy(deep=True)
            for template in self.templates.values()
            if template.user_id == user_id
        ]

    async def get_template(self, template_id: UUID) -> Optional[Template]:
        self.calls.append("get_template")
        template = self.templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def create_template(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Template:
        self.calls.append("create_template")
        now = self._now()
        template = Template(
            id=uuid4(),
            name=name,
            description=description,
            category=category,
            user_id=user_id,
            fields=[field.model_copy(deep=True) for field in fields],
            created_at=now,
            updated_at=now,
        )
        self.templates[template.id] = template
        return template.model_copy(deep=True)

    async def update_template(self, template_id: UUID, **changes: Any) -> Template:
        self.calls.append("update_template")
        template = self.templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template with ID {template_id} not found")
        self.templates[template_id] = template.model_copy(update={**changes, "updated_at": self._now()})
        return self.templates[template_id].model_copy(deep=True)

    async def delete_template(self, template_id: UUID) -> bool:
        self.calls.append("delete_template")
        return self.templates.pop(template_id, None) is not None

    async def get_settings(self, owner_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append("get_settings")
        record = self.settings.get(owner_id)
        return dict(record) if record else None

    async def upsert_settings(self, owner_id: str, **values: Any) -> Dict[str, Any]:
        self.calls.append("upsert_settings")
        record = self.settings.setdefault(owner_id, {"user_id": owner_id, "api_endpoint": None})
        record.update(values)
        return dict(record)
