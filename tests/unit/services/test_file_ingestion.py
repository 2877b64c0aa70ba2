import asyncio
import json

import httpx
import pytest
from unittest.mock import AsyncMock

from docsheet.core.exceptions import EndpointError, NetworkError, NotConfiguredError
from docsheet.schemas.documents import PendingFromFileRow
from docsheet.services.file_ingestion import (
    FileIngestionService,
    UploadProgress,
    build_form_fields,
    extract_row_data,
)
from docsheet.services.row_reconciler import RowStoreReconciler
from docsheet.services.upload_proxy import EndpointResolver, ProxyResult, UploadProxyService

MB = 1024 * 1024


@pytest.fixture
def proxy():
    proxy = AsyncMock(spec=UploadProxyService)
    proxy.forward.return_value = ProxyResult(payload={"data": {"Invoice No": "A-1", "total": 12.5}})
    return proxy


@pytest.fixture
def ingestion(proxy):
    return FileIngestionService(
        proxy,
        inline_max_bytes=2 * MB,
        simulate_when_unconfigured=False,
        network_retries=2,
        retry_delay_seconds=0,
    )


def _progress():
    return UploadProgress(interval=0.01, step=5, ceiling=90)


class TestExtractRowData:

    def test_nested_data_mapping(self, invoice_fields):
        payload = {"success": True, "data": {"invoice_number": "A-1", "unknown": 1}}

        assert extract_row_data(payload, invoice_fields) == {"invoice_number": "A-1"}

    def test_first_element_of_rows_list(self, invoice_fields):
        payload = {"rows": [{"TOTAL": 3}, {"TOTAL": 4}]}

        assert extract_row_data(payload, invoice_fields) == {"total": 3}

    def test_top_level_keys_and_variants(self, invoice_fields):
        payload = {"invoice no": "B-2", "fecha": "2026-01-02"}

        assert extract_row_data(payload, invoice_fields) == {
            "invoice_number": "B-2",
            "fecha": "2026-01-02",
        }

    def test_unusable_payload(self, invoice_fields):
        assert extract_row_data({"success": True}, invoice_fields) is None
        assert extract_row_data("ok", invoice_fields) is None


def test_build_form_fields(invoice_fields):
    form = build_form_fields(invoice_fields, [{"total": 1}])

    fields = json.loads(form["fields"])
    assert fields[0] == {
        "name": "invoice_number",
        "type": "text",
        "variants": ["Invoice No"],
        "formats": [],
    }
    assert json.loads(form["existing_rows"]) == [{"total": 1}]


@pytest.mark.asyncio
async def test_upload_uses_endpoint_data(ingestion, proxy, invoice_fields):
    values = []
    progress = UploadProgress(interval=0.01, on_change=values.append)

    result = await ingestion.upload_file("a.pdf", b"%PDF", invoice_fields, progress=progress)

    assert result.source == "endpoint"
    assert result.data == {"invoice_number": "A-1", "total": 12.5}
    assert result.file_metadata.file_size == 4
    assert result.file_metadata.metadata_only is False
    upload, form = proxy.forward.call_args.args
    assert upload.filename == "a.pdf"
    assert "metadata_only" not in form
    assert values[0] == 10
    assert values[-1] == 100


@pytest.mark.asyncio
async def test_large_file_is_sent_as_metadata_only(ingestion, proxy, invoice_fields):
    result = await ingestion.upload_file("big.pdf", b"x" * (3 * MB), invoice_fields)

    upload, form = proxy.forward.call_args.args
    assert upload is None
    assert form["metadata_only"] == "true"
    assert form["file_name"] == "big.pdf"
    assert form["file_size"] == str(3 * MB)
    assert result.file_metadata.metadata_only is True


@pytest.mark.asyncio
async def test_not_configured_is_raised(ingestion, proxy, invoice_fields):
    proxy.forward.side_effect = NotConfiguredError()

    with pytest.raises(NotConfiguredError):
        await ingestion.upload_file("a.pdf", b"x", invoice_fields, progress=_progress())


@pytest.mark.asyncio
async def test_not_configured_can_be_simulated(proxy, invoice_fields):
    proxy.forward.side_effect = NotConfiguredError()
    ingestion = FileIngestionService(proxy, simulate_when_unconfigured=True)

    result = await ingestion.upload_file("a.pdf", b"x", invoice_fields, progress=_progress())

    assert result.error == "not_configured"
    assert result.source == "simulated"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, kind",
    [
        (EndpointError(503), "endpoint_error"),
        (NetworkError("Could not reach endpoint"), "network_error"),
    ],
)
async def test_transport_failures_keep_file_metadata(ingestion, proxy, invoice_fields, error, kind):
    proxy.forward.side_effect = error

    result = await ingestion.upload_file("a.pdf", b"abc", invoice_fields, progress=_progress())

    assert result.error == kind
    assert result.file_metadata.filename == "a.pdf"
    assert result.file_metadata.file_size == 3
    assert set(result.data) == {"invoice_number", "fecha", "total"}


@pytest.mark.asyncio
async def test_background_processing_uses_simulated_preview(ingestion, proxy, invoice_fields):
    proxy.forward.return_value = ProxyResult(
        payload={"success": True, "processing_in_background": True},
        status_code=202,
        processing_in_background=True,
    )

    result = await ingestion.upload_file("a.pdf", b"x", invoice_fields, progress=_progress())

    assert result.processing_in_background is True
    assert result.source == "simulated"
    assert result.error is None


@pytest.mark.asyncio
async def test_unusable_payload_falls_back_to_simulator(ingestion, proxy, invoice_fields):
    proxy.forward.return_value = ProxyResult(payload={"success": True}, synthesized=True)

    result = await ingestion.upload_file("a.pdf", b"x", invoice_fields, progress=_progress())

    assert result.source == "simulated"
    assert result.raw_response == {"success": True}


@pytest.mark.asyncio
async def test_confirm_adds_pending_file_row(ingestion, store, document, invoice_fields):
    reconciler = RowStoreReconciler(store, document)
    result = await ingestion.upload_file("a.pdf", b"x", invoice_fields, progress=_progress())

    row = ingestion.confirm(result, reconciler, data={"total": 99})

    assert isinstance(row, PendingFromFileRow)
    assert row.local_id.startswith("file-")
    assert row.data["total"] == 99
    assert row.file_metadata.filename == "a.pdf"
    assert reconciler.pending_rows == [row]


@pytest.mark.asyncio
async def test_progress_stops_at_ceiling():
    progress = UploadProgress(interval=0.001, step=40, ceiling=90)

    async with progress:
        await asyncio.sleep(0.05)
        assert progress.value == 90

    assert progress.value == 100



@pytest.mark.asyncio
async def test_network_error_is_retried(ingestion, proxy, invoice_fields):
    proxy.forward.side_effect = [
        NetworkError("Could not reach endpoint"),
        ProxyResult(payload={"data": {"total": 7}}),
    ]

    result = await ingestion.upload_file("a.pdf", b"abc", invoice_fields, progress=_progress())

    assert result.source == "endpoint"
    assert result.data == {"total": 7}
    assert proxy.forward.await_count == 2


@pytest.mark.asyncio
async def test_network_error_gives_up_after_retries(ingestion, proxy, invoice_fields):
    proxy.forward.side_effect = NetworkError("Could not reach endpoint")

    result = await ingestion.upload_file("a.pdf", b"abc", invoice_fields, progress=_progress())

    assert result.error == "network_error"
    assert proxy.forward.await_count == 3


@pytest.mark.asyncio
async def test_endpoint_error_is_not_retried(ingestion, proxy, invoice_fields):
    proxy.forward.side_effect = EndpointError(400, body="bad file")

    result = await ingestion.upload_file("a.pdf", b"abc", invoice_fields, progress=_progress())

    assert result.error == "endpoint_error"
    assert proxy.forward.await_count == 1


@pytest.mark.asyncio
async def test_connection_failure_then_success(configured_store, invoice_fields):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"data": {"Invoice No": "C-3"}})

    proxy = UploadProxyService(
        EndpointResolver(configured_store),
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )
    ingestion = FileIngestionService(proxy, network_retries=2, retry_delay_seconds=0)

    result = await ingestion.upload_file("a.pdf", b"%PDF", invoice_fields, progress=_progress())

    assert len(attempts) == 2
    assert result.source == "endpoint"
    assert result.data == {"invoice_number": "C-3"}
