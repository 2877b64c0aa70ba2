"""Database module for SQLAlchemy models."""

from docsheet.database.models import Document, DocumentRow, Template, UserSettings

__all__ = [
    "Document",
    "DocumentRow",
    "Template",
    "UserSettings",
]
