"""Field schema editing and save-time validation."""

from typing import Any, Iterable, List, Optional

from docsheet.core.config import settings
from docsheet.core.exceptions import ValidationError
from docsheet.schemas.fields import Field, FieldType
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


def reindex_fields(fields: Iterable[Field]) -> List[Field]:
    """Copy the fields with ``order`` re-derived from list position."""
    return [
        field.model_copy(update={"order": position}, deep=True)
        for position, field in enumerate(fields)
    ]


def validate_fields(fields: List[Field], enforce_unique_names: Optional[bool] = None) -> None:
    """Check a field list before it is saved.

    Args:
        fields: Fields in display order
        enforce_unique_names: Reject duplicate names (trimmed, case-insensitive).
            Defaults to the configured policy.

    Raises:
        ValidationError: Naming the first rule that is violated
    """
    if enforce_unique_names is None:
        enforce_unique_names = settings.documents.enforce_unique_field_names

    if not fields:
        raise ValidationError("At least one field is required")

    seen = {}
    for position, field in enumerate(fields, start=1):
        name = (field.name or "").strip()
        if not name:
            raise ValidationError(f"Field name is required (field {position})")

        key = name.lower()
        if enforce_unique_names and key in seen:
            raise ValidationError(
                f"Field names must be unique: '{name}' is used by fields {seen[key]} and {position}"
            )
        seen.setdefault(key, position)


def prepare_fields(fields: List[Field], enforce_unique_names: Optional[bool] = None) -> List[Field]:
    """Validate, trim names and re-index a field list for storage."""
    validate_fields(fields, enforce_unique_names=enforce_unique_names)
    trimmed = [field.model_copy(update={"name": field.name.strip()}) for field in fields]
    return reindex_fields(trimmed)


class FieldSchemaEditor:
    """Local draft of a field list.

    Edits are applied immediately and unvalidated; ``save()`` validates and
    re-indexes. The draft never holds zero fields.
    """

    def __init__(self, fields: Optional[List[Field]] = None):
        self._fields: List[Field] = [field.model_copy(deep=True) for field in fields or []]
        if not self._fields:
            self.add_field()

    @property
    def fields(self) -> List[Field]:
        return [field.model_copy(deep=True) for field in self._fields]

    def __len__(self) -> int:
        return len(self._fields)

    def add_field(self) -> Field:
        """Append a blank text field and return it."""
        field = Field(name="", type=FieldType.TEXT, order=len(self._fields))
        self._fields.append(field)
        return field.model_copy(deep=True)

    def update_field(self, field_id: str, **changes: Any) -> Optional[Field]:
        """Merge ``changes`` into the field with ``field_id``.

        Unknown ids are ignored and return None. The identifier itself
        cannot be changed. The legacy ``field_name`` key is accepted
        for ``name``.
        """
        changes.pop("id", None)
        if "field_name" in changes:
            changes.setdefault("name", changes.pop("field_name"))
        for index, field in enumerate(self._fields):
            if field.id == field_id:
                merged = Field.model_validate({**field.model_dump(), **changes})
                self._fields[index] = merged
                return merged.model_copy(deep=True)
        return None

    def remove_field(self, field_id: str) -> bool:
        """Remove a field unless it is the last one left."""
        if len(self._fields) <= 1:
            LOGGER.debug("Refusing to remove the last remaining field")
            return False
        remaining = [field for field in self._fields if field.id != field_id]
        if len(remaining) == len(self._fields):
            return False
        self._fields = remaining
        return True

    def replace(self, fields: List[Field]) -> None:
        """Swap the whole draft, e.g. after loading a template."""
        if not fields:
            raise ValidationError("At least one field is required")
        self._fields = [field.model_copy(deep=True) for field in fields]

    def save(self, enforce_unique_names: Optional[bool] = None) -> List[Field]:
        """Validate the draft and return the re-indexed list to persist."""
        saved = prepare_fields(self._fields, enforce_unique_names=enforce_unique_names)
        self._fields = [field.model_copy(deep=True) for field in saved]
        return saved
