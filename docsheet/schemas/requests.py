"""Request bodies accepted by the v1 API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as PydanticField

from docsheet.schemas.documents import FileMetadata
from docsheet.schemas.fields import Field


class DocumentCreateRequest(BaseModel):
    user_id: str = PydanticField(..., description="Owner of the document")
    name: str = PydanticField(..., description="Document name")
    description: Optional[str] = None
    fields: List[Field] = PydanticField(default_factory=list)


class DocumentUpdateRequest(BaseModel):
    """Partial update; omitted attributes are left untouched."""

    name: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[Field]] = None


class RowCreateRequest(BaseModel):
    data: Dict[str, Any] = PydanticField(default_factory=dict)
    file_metadata: Optional[FileMetadata] = None


class RowUpdateRequest(BaseModel):
    data: Dict[str, Any]


class SimulateExtractionRequest(BaseModel):
    filename: str
    mime_type: Optional[str] = None


class TemplateCreateRequest(BaseModel):
    user_id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    fields: List[Field] = PydanticField(default_factory=list)


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[Field]] = None


class TemplateDuplicateRequest(BaseModel):
    user_id: Optional[str] = PydanticField(default=None, description="Defaults to the source owner")


class TemplateInstantiateRequest(BaseModel):
    user_id: str
    name: Optional[str] = PydanticField(default=None, description="Defaults to '<template> - <date>'")
    description: Optional[str] = None


class TemplateFromDocumentRequest(BaseModel):
    user_id: str
    name: Optional[str] = None
    description: Optional[str] = None


class ApiEndpointUpdateRequest(BaseModel):
    api_endpoint: Optional[str] = PydanticField(default=None, description="Empty clears the endpoint")


class FileConfirmRequest(BaseModel):
    """Reviewed extraction result to commit as a row."""

    file_metadata: FileMetadata
    data: Dict[str, Any] = PydanticField(default_factory=dict, description="Values the user confirmed")
