"""Repository layer modules."""

from docsheet.repositories.document_repository import DocumentRepository
from docsheet.repositories.row_repository import DocumentRowRepository
from docsheet.repositories.settings_repository import UserSettingsRepository
from docsheet.repositories.template_repository import TemplateRepository

__all__ = [
    "DocumentRepository",
    "DocumentRowRepository",
    "TemplateRepository",
    "UserSettingsRepository",
]
