"""File ingestion: upload, normalize the extraction result, confirm as a row.

This is the caller side of the upload proxy. It decides whether the file
travels with its bytes or as metadata only, keeps a simulated progress
value moving while the call is in flight, and guarantees a reviewable
preview by falling back to the extraction simulator.
"""

import asyncio
import json
from contextlib import suppress
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field as PydanticField

from docsheet.core.config import settings
from docsheet.core.exceptions import (
    APIClientError,
    EndpointError,
    FileTooLargeError,
    NetworkError,
    NotConfiguredError,
)
from docsheet.schemas.documents import FileMetadata, PendingFromFileRow
from docsheet.schemas.fields import Field
from docsheet.services.extraction_simulator import ExtractionSimulator
from docsheet.services.row_reconciler import RowStoreReconciler
from docsheet.services.upload_proxy import METADATA_ONLY_FLAG, ProxyResult, ProxyUpload, UploadProxyService
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Keys under which an endpoint may nest the extracted row
_PAYLOAD_KEYS = ("data", "row", "rows", "result", "extracted_data")


class UploadProgress:
    """Simulated upload progress.

    The transport exposes no byte-level progress, so while the call is in
    flight a ticker advances the value by ``step`` every ``interval``
    seconds up to ``ceiling``. Leaving the context sets it to 100.
    """

    def __init__(
        self,
        interval: Optional[float] = None,
        step: Optional[int] = None,
        ceiling: Optional[int] = None,
        on_change: Optional[Callable[[int], None]] = None,
    ):
        self.interval = interval if interval is not None else settings.upload.progress_interval_seconds
        self.step = step if step is not None else settings.upload.progress_step
        self.ceiling = ceiling if ceiling is not None else settings.upload.progress_ceiling
        self.on_change = on_change
        self.value = 0
        self._task: Optional[asyncio.Task] = None

    def set(self, value: int) -> None:
        self.value = max(0, min(100, value))
        if self.on_change:
            self.on_change(self.value)

    async def _tick(self) -> None:
        while self.value < self.ceiling:
            await asyncio.sleep(self.interval)
            self.set(min(self.ceiling, self.value + self.step))

    async def __aenter__(self) -> "UploadProgress":
        self.set(10)
        self._task = asyncio.create_task(self._tick())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self.set(100)


class IngestionResult(BaseModel):
    """What the user reviews before confirming a file as a row."""

    file_metadata: FileMetadata
    data: Dict[str, Any] = PydanticField(default_factory=dict)
    source: Literal["endpoint", "simulated"] = "simulated"
    processing_in_background: bool = False
    error: Optional[Literal["not_configured", "too_large", "endpoint_error", "network_error"]] = None
    error_message: Optional[str] = None
    raw_response: Any = None


def _field_aliases(fields: Sequence[Field]) -> Dict[str, str]:
    """Lower-cased name and variants mapped to the field name."""
    aliases: Dict[str, str] = {}
    for field in fields:
        if not field.name:
            continue
        for alias in [field.name, *field.variants]:
            aliases.setdefault(alias.strip().lower(), field.name)
    return aliases


def _candidates(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [payload[0]] if payload and isinstance(payload[0], dict) else []
    if not isinstance(payload, dict):
        return []

    found = []
    for key in _PAYLOAD_KEYS:
        value = payload.get(key)
        if isinstance(value, dict):
            found.append(value)
        elif isinstance(value, list) and value and isinstance(value[0], dict):
            found.append(value[0])
    found.append(payload)
    return found


def extract_row_data(payload: Any, fields: Sequence[Field]) -> Optional[Dict[str, Any]]:
    """Pull a row out of an endpoint payload.

    Keys are matched against field names and their variants,
    case-insensitively. Returns None when nothing matches.
    """
    aliases = _field_aliases(fields)
    for candidate in _candidates(payload):
        data = {}
        for key, value in candidate.items():
            name = aliases.get(str(key).strip().lower())
            if name is not None and name not in data:
                data[name] = value
        if data:
            return data
    return None


def build_form_fields(
    fields: Sequence[Field],
    existing_rows: Sequence[Dict[str, Any]],
) -> Dict[str, str]:
    """Serialize the schema and current rows for the endpoint."""
    return {
        "fields": json.dumps([
            {
                "name": field.name,
                "type": field.type.value,
                "variants": field.variants,
                "formats": field.formats,
            }
            for field in fields
        ]),
        "existing_rows": json.dumps(list(existing_rows), default=str),
    }


class FileIngestionService:
    """Uploads a file through the proxy and shapes the result for review."""

    def __init__(
        self,
        proxy: UploadProxyService,
        simulator: Optional[ExtractionSimulator] = None,
        inline_max_bytes: Optional[int] = None,
        simulate_when_unconfigured: Optional[bool] = None,
        network_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
    ):
        self.proxy = proxy
        self.simulator = simulator or ExtractionSimulator()
        self.inline_max_bytes = inline_max_bytes or settings.upload.inline_max_bytes
        if simulate_when_unconfigured is None:
            simulate_when_unconfigured = settings.upload.simulate_when_unconfigured
        self.simulate_when_unconfigured = simulate_when_unconfigured
        self.network_retries = network_retries if network_retries is not None else settings.upload.network_retries
        self.retry_delay = (
            retry_delay_seconds if retry_delay_seconds is not None else settings.upload.retry_delay_seconds
        )

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        fields: List[Field],
        existing_rows: Sequence[Dict[str, Any]] = (),
        content_type: str = "application/octet-stream",
        progress: Optional[UploadProgress] = None,
    ) -> IngestionResult:
        """Upload a file and return a reviewable extraction result.

        Files above the inline ceiling are sent as metadata only. Transport
        and endpoint failures still return the file metadata, with the
        preview filled by the simulator. Network failures are first retried
        ``network_retries`` times.

        Args:
            filename: Name of the user's file
            content: File bytes
            fields: Document field schema
            existing_rows: Data mappings of the rows already in the document
            content_type: MIME type of the file
            progress: Optional progress tracker to drive

        Raises:
            NotConfiguredError: No endpoint configured, raised before any
                outbound call unless simulation of that case is enabled
        """
        metadata = FileMetadata(filename=filename, file_size=len(content), file_type=content_type)
        form_fields = build_form_fields(fields, existing_rows)

        upload: Optional[ProxyUpload] = ProxyUpload(filename, content, content_type)
        if metadata.file_size > self.inline_max_bytes:
            LOGGER.warning(
                "File above inline ceiling, sending metadata only",
                extra={"file_name": filename, "size": metadata.file_size, "limit": self.inline_max_bytes},
            )
            metadata.metadata_only = True
            upload = None
            form_fields.update({
                METADATA_ONLY_FLAG: "true",
                "file_name": filename,
                "file_size": str(metadata.file_size),
                "file_type": content_type,
            })

        progress = progress or UploadProgress()
        try:
            async with progress:
                proxy_result = await self._forward_with_retry(upload, form_fields)
        except NotConfiguredError:
            if not self.simulate_when_unconfigured:
                raise
            return self._simulated(metadata, fields, error="not_configured",
                                   message="API endpoint not configured")
        except FileTooLargeError as e:
            return self._simulated(metadata, fields, error="too_large", message=e.message)
        except EndpointError as e:
            return self._simulated(metadata, fields, error="endpoint_error", message=e.message)
        except (NetworkError, APIClientError) as e:
            return self._simulated(metadata, fields, error="network_error", message=e.message)

        if proxy_result.processing_in_background:
            result = self._simulated(metadata, fields)
            result.processing_in_background = True
            result.raw_response = proxy_result.payload
            return result

        data = extract_row_data(proxy_result.payload, fields)
        if data is None:
            result = self._simulated(metadata, fields)
            result.raw_response = proxy_result.payload
            return result

        return IngestionResult(
            file_metadata=metadata,
            data=data,
            source="endpoint",
            raw_response=proxy_result.payload,
        )

    async def _forward_with_retry(
        self,
        upload: Optional[ProxyUpload],
        form_fields: Dict[str, str],
    ) -> ProxyResult:
        attempts = self.network_retries + 1
        for attempt in range(attempts):
            try:
                return await self.proxy.forward(upload, form_fields)
            except NetworkError as e:
                LOGGER.warning(
                    f"Upload network error (Attempt {attempt + 1}/{attempts})",
                    extra={"error": e.message},
                )
                if attempt >= attempts - 1:
                    raise
                await self._wait_before_retry(attempt)

    async def _wait_before_retry(self, attempt: int) -> None:
        """Linear backoff wait."""
        await asyncio.sleep(self.retry_delay * (attempt + 1))

    def _simulated(
        self,
        metadata: FileMetadata,
        fields: List[Field],
        error: Optional[str] = None,
        message: Optional[str] = None,
    ) -> IngestionResult:
        if error:
            LOGGER.warning(
                f"Upload of {metadata.filename} failed ({error}), showing simulated data",
                extra={"error_message": message},
            )
        return IngestionResult(
            file_metadata=metadata,
            data=self.simulator.simulate(fields, metadata.filename, metadata.file_type),
            source="simulated",
            error=error,
            error_message=message,
        )

    def confirm(
        self,
        result: IngestionResult,
        reconciler: RowStoreReconciler,
        data: Optional[Dict[str, Any]] = None,
    ) -> PendingFromFileRow:
        """Turn a reviewed result into a pending row awaiting commit.

        Args:
            result: Result returned by ``upload_file``
            reconciler: Row state of the target document
            data: Values edited by the user, replacing the extracted ones
        """
        row_data = {**result.data, **(data or {})}
        return reconciler.add_pending_from_file(row_data, result.file_metadata)
