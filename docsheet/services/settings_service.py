"""Extraction endpoint configuration."""

from typing import Any, Dict, Optional

import httpx

from docsheet.core.config import settings
from docsheet.core.exceptions import ValidationError
from docsheet.services.store import DocumentStore
from docsheet.services.upload_proxy import EndpointResolver
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SettingsService:
    """Reads and writes the shared configuration record."""

    def __init__(self, store: DocumentStore, owner_id: Optional[str] = None):
        self.store = store
        self.owner_id = owner_id or settings.documents.global_settings_owner_id
        self.resolver = EndpointResolver(store, owner_id=self.owner_id)

    async def check_config(self) -> Dict[str, Any]:
        """Report whether an extraction endpoint is configured.

        The endpoint value itself is never returned.
        """
        configured = await self.resolver.is_configured()
        return {
            "configured": configured,
            "settings_path": settings.documents.settings_path,
        }

    async def set_api_endpoint(self, api_endpoint: Optional[str]) -> Dict[str, Any]:
        """Store the endpoint URL; an empty value clears it.

        Raises:
            ValidationError: If the value is not an absolute http(s) URL
        """
        value = (api_endpoint or "").strip() or None
        if value is not None:
            try:
                url = httpx.URL(value)
            except httpx.InvalidURL as e:
                raise ValidationError(f"Invalid endpoint URL: {value}", original_error=e)
            if url.scheme not in ("http", "https") or not url.host:
                raise ValidationError(f"Endpoint must be an absolute http(s) URL: {value}")

        await self.store.upsert_settings(self.owner_id, api_endpoint=value)
        LOGGER.info("Extraction endpoint updated", extra={"configured": value is not None})
        return await self.check_config()
