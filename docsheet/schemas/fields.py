"""Field schema model.

A field is one named, typed column of a document or template. Lists of
fields are ordered; ``order`` mirrors the list position and is re-derived
whenever a list is saved.
"""

from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field as PydanticField


class FieldType(str, Enum):
    """Declared value type of a field."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    EMAIL = "email"
    URL = "url"


def new_field_id() -> str:
    """Generate a fresh field identifier."""
    return uuid4().hex


class Field(BaseModel):
    """One column of a document's or template's schema."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = PydanticField(default_factory=new_field_id, description="Unique within its schema")
    name: str = PydanticField(
        default="",
        validation_alias=AliasChoices("name", "field_name"),
        description="Key used in row data",
    )
    type: FieldType = PydanticField(default=FieldType.TEXT)
    description: Optional[str] = None
    variants: List[str] = PydanticField(default_factory=list, description="Alias strings")
    formats: List[str] = PydanticField(default_factory=list, description="Accepted formats")
    required: bool = False
    order: int = 0

    def with_fresh_id(self) -> "Field":
        """Deep copy of this field under a new identifier."""
        return self.model_copy(update={"id": new_field_id()}, deep=True)
