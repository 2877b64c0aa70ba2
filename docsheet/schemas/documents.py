"""Documents, templates and the tagged row variants."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field as PydanticField

from docsheet.schemas.fields import Field

PENDING_PREFIX = "temp-"
PENDING_FROM_FILE_PREFIX = "file-"

UNTITLED_DOCUMENT_NAME = "Untitled document"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_local_id(prefix: str = PENDING_PREFIX) -> str:
    """Transient identifier for a row that storage has not seen yet."""
    return f"{prefix}{uuid4().hex}"


class FileMetadata(BaseModel):
    """Metadata of a file a row was extracted from."""

    filename: str
    file_size: int = PydanticField(..., ge=0, description="Size in bytes")
    file_type: str = PydanticField(default="application/octet-stream", description="MIME type")
    upload_date: datetime = PydanticField(default_factory=_utcnow)
    file_url: Optional[str] = None
    metadata_only: bool = PydanticField(
        default=False, description="Binary was withheld because it exceeded the inline ceiling"
    )


class PersistedRow(BaseModel):
    """Row confirmed durable by storage."""

    kind: Literal["persisted"] = "persisted"
    id: UUID
    document_id: UUID
    data: Dict[str, Any] = PydanticField(default_factory=dict)
    file_metadata: Optional[FileMetadata] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def row_key(self) -> str:
        return str(self.id)


class PendingRow(BaseModel):
    """Row created locally that has not been committed yet."""

    kind: Literal["pending"] = "pending"
    local_id: str = PydanticField(default_factory=lambda: new_local_id(PENDING_PREFIX))
    # None while the owning document itself has not been created
    document_id: Optional[UUID] = None
    data: Dict[str, Any] = PydanticField(default_factory=dict)
    created_at: datetime = PydanticField(default_factory=_utcnow)

    @property
    def row_key(self) -> str:
        return self.local_id

    @property
    def file_metadata(self) -> Optional[FileMetadata]:
        return None


class PendingFromFileRow(BaseModel):
    """Row built from file extraction, awaiting commit."""

    kind: Literal["pending_file"] = "pending_file"
    local_id: str = PydanticField(default_factory=lambda: new_local_id(PENDING_FROM_FILE_PREFIX))
    document_id: Optional[UUID] = None
    data: Dict[str, Any] = PydanticField(default_factory=dict)
    file_metadata: FileMetadata
    created_at: datetime = PydanticField(default_factory=_utcnow)

    @property
    def row_key(self) -> str:
        return self.local_id


LocalRow = Union[PendingRow, PendingFromFileRow]


def row_from_record(record: Dict[str, Any]) -> Union[PersistedRow, PendingRow, PendingFromFileRow]:
    """Classify a wire-format row (``id`` plus data) into its lifecycle variant.

    Identifiers carrying a transient prefix are never durable, whatever
    their ``document_id`` says.
    """
    row_id = record.get("id") or record.get("local_id")
    common = {
        "document_id": record.get("document_id"),
        "data": record.get("data") or {},
    }
    if row_id is None:
        return PendingRow(**common)
    if str(row_id).startswith(PENDING_PREFIX):
        return PendingRow(local_id=str(row_id), **common)
    if str(row_id).startswith(PENDING_FROM_FILE_PREFIX):
        return PendingFromFileRow(
            local_id=str(row_id),
            file_metadata=record.get("file_metadata"),
            **common,
        )
    return PersistedRow(
        id=row_id,
        file_metadata=record.get("file_metadata"),
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
        **common,
    )


class Document(BaseModel):
    """A document and its durable rows. Pending rows never live here."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    user_id: str
    fields: List[Field] = PydanticField(default_factory=list)
    rows: List[PersistedRow] = PydanticField(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]


class Template(BaseModel):
    """Reusable field schema without row data."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    user_id: str
    fields: List[Field] = PydanticField(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
