"""Upload proxy: forwards a file plus form context to the extraction endpoint.

The endpoint address comes from the configuration record of the global
settings owner, never from the caller. The outbound call is bounded by
``UPLOAD_TIMEOUT_SECONDS``, which is kept below the platform execution
ceiling so the proxy always answers before it is killed.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from docsheet.core.config import settings
from docsheet.core.exceptions import (
    EndpointError,
    FileTooLargeError,
    NetworkError,
    MissingFileError,
    NotConfiguredError,
    ValidationError,
)
from docsheet.services.store import DocumentStore
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Form fields carrying JSON context for the endpoint
JSON_FORM_FIELDS = ("fields", "existing_rows")
METADATA_ONLY_FLAG = "metadata_only"

BACKGROUND_MESSAGE = "File accepted and processing in background"


@dataclass
class ProxyUpload:
    """File part of an upload request."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
    size: Optional[int] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.content)


@dataclass
class ProxyResult:
    """Normalized outcome of a forwarded upload.

    ``processing_in_background`` marks the timeout soft-success: the file
    was handed over but no confirmation arrived in time.
    """

    payload: Any
    status_code: int = 200
    processing_in_background: bool = False
    synthesized: bool = False
    endpoint: Optional[str] = field(default=None, repr=False)


class EndpointResolver:
    """Looks up the extraction endpoint in the configuration record."""

    def __init__(self, store: DocumentStore, owner_id: Optional[str] = None):
        self.store = store
        self.owner_id = owner_id or settings.documents.global_settings_owner_id

    async def resolve(self) -> str:
        """Return the configured endpoint URL.

        Raises:
            NotConfiguredError: If no record or no endpoint value exists
        """
        record = await self.store.get_settings(self.owner_id)
        endpoint = ((record or {}).get("api_endpoint") or "").strip()
        if not endpoint:
            LOGGER.warning("Extraction endpoint is not configured", extra={"owner_id": self.owner_id})
            raise NotConfiguredError(settings_path=settings.documents.settings_path)
        return endpoint

    async def is_configured(self) -> bool:
        try:
            await self.resolve()
        except NotConfiguredError:
            return False
        return True


def _is_metadata_only(form_fields: Dict[str, str]) -> bool:
    return str(form_fields.get(METADATA_ONLY_FLAG, "")).lower() in ("1", "true", "yes")


def _check_json_fields(form_fields: Dict[str, str]) -> None:
    for name in JSON_FORM_FIELDS:
        raw = form_fields.get(name)
        if raw in (None, ""):
            continue
        try:
            json.loads(raw)
        except ValueError as e:
            raise ValidationError(f"Form field '{name}' is not valid JSON", original_error=e)


class UploadProxyService:
    """Forwards uploads to the configured extraction endpoint."""

    def __init__(
        self,
        resolver: EndpointResolver,
        timeout_seconds: Optional[float] = None,
        max_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.resolver = resolver
        self.timeout_seconds = timeout_seconds or settings.upload.timeout_seconds
        self.max_bytes = max_bytes or settings.upload.max_bytes
        self.transport = transport

    def validate(self, upload: Optional[ProxyUpload], form_fields: Dict[str, str]) -> None:
        """Reject requests that must never leave the proxy.

        Raises:
            MissingFileError: No file part and no metadata-only flag
            ValidationError: Malformed JSON context
            FileTooLargeError: File above the hard cap
        """
        if upload is None:
            if not _is_metadata_only(form_fields):
                raise MissingFileError("No file provided")
        elif upload.size > self.max_bytes:
            LOGGER.warning(
                "Rejected oversized upload",
                extra={"file_name": upload.filename, "size": upload.size, "max_bytes": self.max_bytes},
            )
            raise FileTooLargeError(self.max_bytes, size=upload.size)
        _check_json_fields(form_fields)

    async def forward(
        self,
        upload: Optional[ProxyUpload],
        form_fields: Optional[Dict[str, str]] = None,
    ) -> ProxyResult:
        """Validate, resolve the endpoint and forward the upload.

        Args:
            upload: File part, or None for metadata-only requests
            form_fields: Every non-file form field, forwarded unchanged

        Returns:
            ProxyResult with the endpoint payload, a synthesized success
            payload, or the background-processing soft success

        Raises:
            ValidationError: Request rejected before any network call
            NotConfiguredError: No endpoint configured
            EndpointError: Endpoint answered with a non-success status
            NetworkError: Endpoint could not be reached
        """
        form_fields = dict(form_fields or {})
        self.validate(upload, form_fields)
        endpoint = await self.resolver.resolve()

        # Plain form fields go in as filename-less parts so the body is always multipart
        parts = [(name, (None, value)) for name, value in form_fields.items()]
        if upload is not None:
            parts.append(("file", (upload.filename, upload.content, upload.content_type)))

        LOGGER.info(
            "Forwarding upload",
            extra={
                "endpoint": endpoint,
                "file_name": upload.filename if upload else form_fields.get("file_name"),
                "size": upload.size if upload else None,
                "metadata_only": upload is None,
            },
        )

        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=httpx.Timeout(self.timeout_seconds),
            ) as client:
                response = await asyncio.wait_for(
                    client.post(endpoint, files=parts),
                    timeout=self.timeout_seconds,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            LOGGER.warning(
                f"Endpoint did not answer within {self.timeout_seconds}s, reporting background processing",
                extra={"endpoint": endpoint},
            )
            return ProxyResult(
                payload={
                    "success": True,
                    "processing_in_background": True,
                    "message": BACKGROUND_MESSAGE,
                },
                status_code=202,
                processing_in_background=True,
                endpoint=endpoint,
            )
        except httpx.RequestError as e:
            LOGGER.error(f"Endpoint unreachable: {str(e)}", exc_info=True, extra={"endpoint": endpoint})
            raise NetworkError(f"Could not reach endpoint: {str(e)}", original_error=e)

        if not response.is_success:
            LOGGER.error(
                f"Endpoint responded with {response.status_code}",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            raise EndpointError(response.status_code, body=response.text)

        try:
            payload = response.json()
        except ValueError:
            LOGGER.warning(
                "Endpoint accepted the upload but returned an unparsable body",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            return ProxyResult(payload={"success": True}, synthesized=True, endpoint=endpoint)

        return ProxyResult(payload=payload, endpoint=endpoint)
