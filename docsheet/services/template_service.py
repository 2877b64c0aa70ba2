"""Template application: moving field schemas between templates and documents."""

from datetime import date
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from docsheet.core.exceptions import TemplateNotFoundError, ValidationError
from docsheet.schemas.documents import Document, Template
from docsheet.schemas.fields import Field
from docsheet.services.document_service import DocumentService
from docsheet.services.field_schema import prepare_fields
from docsheet.services.store import DocumentStore
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

COPY_SUFFIX = " (Copy)"


def load_template(template: Template) -> List[Field]:
    """Copy a template's fields by value, identifiers included."""
    return [field.model_copy(deep=True) for field in template.fields]


def refresh_field_ids(fields: List[Field]) -> List[Field]:
    """Deep copy with new identifiers, detaching the copy from its source."""
    return [field.with_fresh_id() for field in fields]


def filter_templates(
    templates: List[Template],
    search: Optional[str] = None,
    sort_by: Literal["name", "created_at"] = "created_at",
    descending: bool = True,
) -> List[Template]:
    """Search by name or description and sort."""
    term = (search or "").strip().lower()
    if term:
        templates = [
            template for template in templates
            if term in template.name.lower() or term in (template.description or "").lower()
        ]

    if sort_by == "name":
        key = lambda template: template.name.lower()  # noqa: E731
    else:
        key = lambda template: template.created_at.timestamp() if template.created_at else 0.0  # noqa: E731
    return sorted(templates, key=key, reverse=descending)


class TemplateService:
    """Creates, duplicates and instantiates templates."""

    def __init__(self, store: DocumentStore, documents: Optional[DocumentService] = None):
        self.store = store
        self.documents = documents or DocumentService(store)

    async def get_template(self, template_id: UUID) -> Template:
        template = await self.store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template with ID {template_id} not found")
        return template

    async def list_templates(
        self,
        user_id: str,
        search: Optional[str] = None,
        sort_by: Literal["name", "created_at"] = "created_at",
        descending: bool = True,
    ) -> List[Template]:
        templates = await self.store.get_templates(user_id)
        return filter_templates(templates, search=search, sort_by=sort_by, descending=descending)

    async def save_as_template(
        self,
        user_id: str,
        name: str,
        fields: List[Field],
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Template:
        """Store a field list as a new template under fresh field identifiers.

        Raises:
            ValidationError: Empty field list, blank name or invalid fields
        """
        if not fields:
            raise ValidationError("A template needs at least one field")
        if not (name or "").strip():
            raise ValidationError("Template name is required")

        prepared = prepare_fields(refresh_field_ids(fields))
        template = await self.store.create_template(
            user_id=user_id,
            name=name.strip(),
            fields=prepared,
            description=description,
            category=category,
        )
        LOGGER.info(f"Template saved: template_id={template.id}, fields={len(prepared)}")
        return template

    async def template_from_document(
        self,
        document_id: UUID,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Template:
        """Derive a template from a document's current fields."""
        document = await self.documents.get_document(document_id)
        return await self.save_as_template(
            user_id=user_id,
            name=name or document.name,
            fields=document.fields,
            description=description if description is not None else document.description,
        )

    async def duplicate_template(self, template_id: UUID, user_id: Optional[str] = None) -> Template:
        """Copy a template under a suffixed name and fresh field identifiers."""
        source = await self.get_template(template_id)
        return await self.save_as_template(
            user_id=user_id or source.user_id,
            name=f"{source.name}{COPY_SUFFIX}",
            fields=source.fields,
            description=source.description,
            category=source.category,
        )

    async def update_template(
        self,
        template_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        fields: Optional[List[Field]] = None,
    ) -> Template:
        changes: Dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Template name is required")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if fields is not None:
            if not fields:
                raise ValidationError("A template needs at least one field")
            changes["fields"] = prepare_fields(fields)
        if not changes:
            return await self.get_template(template_id)
        return await self.store.update_template(template_id, **changes)

    async def delete_template(self, template_id: UUID) -> bool:
        return await self.store.delete_template(template_id)

    async def create_document_from_template(
        self,
        template_id: UUID,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Document:
        """Instantiate a document with a fresh copy of the template's fields."""
        template = await self.get_template(template_id)
        return await self.documents.create_document(
            user_id=user_id,
            name=name or f"{template.name} - {date.today().isoformat()}",
            fields=refresh_field_ids(template.fields),
            description=description if description is not None else template.description,
        )
