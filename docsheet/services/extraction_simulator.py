"""Fallback extraction used when the external endpoint gives nothing usable.

Values are derived from the field name first and the declared field type
second, so the user always has a reviewable preview.
"""

import math
import random
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from docsheet.schemas.fields import Field, FieldType
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

PLACEHOLDER_ORGANIZATION = "Example Company Inc."
PLACEHOLDER_EMAIL = "contact@example.com"
PLACEHOLDER_URL = "https://example.com"


class ExtractionSimulator:
    """Produces plausible row data for a field schema."""

    def __init__(self, rng: Optional[random.Random] = None, today: Optional[Callable[[], date]] = None):
        self.rng = rng or random.Random()
        self.today = today or date.today

        # First matching entry wins; order matters ("total_number" is an amount)
        self.name_rules: List[Tuple[Tuple[str, ...], Callable[[Field, str], Any]]] = [
            (("title", "titulo"), lambda field, filename: f"Document extracted from {filename}"),
            (("date", "fecha"), lambda field, filename: self._today()),
            (("amount", "monto", "total"), lambda field, filename: self._amount()),
            (("number", "numero"), lambda field, filename: f"DOC-{self.rng.randint(1000, 9999)}"),
            (("name", "nombre"), lambda field, filename: PLACEHOLDER_ORGANIZATION),
            (("email", "correo"), lambda field, filename: PLACEHOLDER_EMAIL),
        ]
        self.type_rules: Dict[FieldType, Callable[[Field, str], Any]] = {
            FieldType.TEXT: lambda field, filename: f"Sample {field.name}",
            FieldType.NUMBER: lambda field, filename: self.rng.randint(1, 1000),
            FieldType.DATE: lambda field, filename: self._today(),
            FieldType.BOOLEAN: lambda field, filename: False,
            FieldType.EMAIL: lambda field, filename: PLACEHOLDER_EMAIL,
            FieldType.URL: lambda field, filename: PLACEHOLDER_URL,
        }

    def _today(self) -> str:
        return self.today().isoformat()

    def _amount(self) -> float:
        # Truncate so the value stays inside [100, 1100)
        return math.floor((100 + self.rng.random() * 1000) * 100) / 100

    def value_for(self, field: Field, filename: str) -> Any:
        """Value of exactly one rule: name heuristics, then type."""
        name = (field.name or "").lower()
        for keywords, rule in self.name_rules:
            if any(keyword in name for keyword in keywords):
                return rule(field, filename)
        return self.type_rules.get(field.type, self.type_rules[FieldType.TEXT])(field, filename)

    def simulate(
        self,
        fields: List[Field],
        filename: str,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build a data mapping keyed by field name.

        Args:
            fields: Document field schema
            filename: Name of the uploaded file
            mime_type: MIME type of the uploaded file

        Returns:
            Field name to simulated value
        """
        data = {field.name: self.value_for(field, filename) for field in fields if field.name}
        LOGGER.warning(
            "Using simulated extraction",
            extra={"file_name": filename, "mime_type": mime_type, "fields": len(data)},
        )
        return data


def simulate_extraction(
    fields: List[Field],
    filename: str,
    mime_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Shortcut using a fresh simulator."""
    return ExtractionSimulator().simulate(fields, filename, mime_type)
