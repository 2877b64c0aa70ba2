import asyncio
import json

import httpx
import pytest

from docsheet.core.exceptions import (
    EndpointError,
    FileTooLargeError,
    MissingFileError,
    NetworkError,
    NotConfiguredError,
    ValidationError,
)
from docsheet.services.upload_proxy import EndpointResolver, ProxyUpload, UploadProxyService

MB = 1024 * 1024


class RecordingHandler:
    """MockTransport handler that records every outbound request."""

    def __init__(self, response=None, delay=None, error=None):
        self.response = response or httpx.Response(200, json={"data": {"total": 10}})
        self.delay = delay
        self.error = error
        self.requests = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


def _proxy(store, handler, timeout_seconds=5.0):
    return UploadProxyService(
        EndpointResolver(store),
        timeout_seconds=timeout_seconds,
        max_bytes=4 * MB,
        transport=httpx.MockTransport(handler),
    )


def _upload(size=16):
    return ProxyUpload(filename="invoice.pdf", content=b"x" * size, content_type="application/pdf")


@pytest.mark.asyncio
async def test_forwards_file_and_form_fields(configured_store):
    handler = RecordingHandler()
    proxy = _proxy(configured_store, handler)
    form = {"fields": json.dumps([{"name": "total"}]), "existing_rows": "[]", "extra": "kept"}

    result = await proxy.forward(_upload(), form)

    assert result.payload == {"data": {"total": 10}}
    assert result.processing_in_background is False
    request = handler.requests[0]
    assert str(request.url) == "https://extract.example.test/upload"
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="file"; filename="invoice.pdf"' in body
    assert b'name="extra"' in body
    assert b'[{"name": "total"}]' in body


@pytest.mark.asyncio
async def test_oversized_file_never_leaves_proxy(configured_store):
    handler = RecordingHandler()
    proxy = _proxy(configured_store, handler)

    with pytest.raises(FileTooLargeError, match=r"File too large \(max 4MB\)"):
        await proxy.forward(_upload(size=5 * MB))

    assert handler.requests == []


@pytest.mark.asyncio
async def test_not_configured_makes_no_outbound_call(store):
    handler = RecordingHandler()
    proxy = _proxy(store, handler)

    with pytest.raises(NotConfiguredError) as exc_info:
        await proxy.forward(_upload())

    assert exc_info.value.settings_path == "/settings"
    assert handler.requests == []


@pytest.mark.asyncio
async def test_blank_endpoint_counts_as_not_configured(store):
    await store.upsert_settings(EndpointResolver(store).owner_id, api_endpoint="   ")

    assert await EndpointResolver(store).is_configured() is False


@pytest.mark.asyncio
async def test_timeout_is_soft_success(configured_store):
    handler = RecordingHandler(delay=1.0)
    proxy = _proxy(configured_store, handler, timeout_seconds=0.05)

    result = await proxy.forward(_upload())

    assert result.processing_in_background is True
    assert result.status_code == 202
    assert result.payload["success"] is True
    assert result.payload["processing_in_background"] is True


@pytest.mark.asyncio
async def test_endpoint_status_is_relayed(configured_store):
    handler = RecordingHandler(response=httpx.Response(503, text="Service Unavailable"))
    proxy = _proxy(configured_store, handler)

    with pytest.raises(EndpointError) as exc_info:
        await proxy.forward(_upload())

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "Endpoint responded with 503"
    assert exc_info.value.body == "Service Unavailable"


@pytest.mark.asyncio
async def test_unparsable_success_body_is_synthesized(configured_store):
    handler = RecordingHandler(response=httpx.Response(200, text="<html>ok</html>"))
    proxy = _proxy(configured_store, handler)

    result = await proxy.forward(_upload())

    assert result.payload == {"success": True}
    assert result.synthesized is True


@pytest.mark.asyncio
async def test_network_failure(configured_store):
    handler = RecordingHandler(error=httpx.ConnectError("connection refused"))
    proxy = _proxy(configured_store, handler)

    with pytest.raises(NetworkError, match="connection refused"):
        await proxy.forward(_upload())


@pytest.mark.asyncio
async def test_missing_file_is_rejected(configured_store):
    handler = RecordingHandler()
    proxy = _proxy(configured_store, handler)

    with pytest.raises(MissingFileError, match="No file provided"):
        await proxy.forward(None, {"fields": "[]"})

    assert handler.requests == []


@pytest.mark.asyncio
async def test_metadata_only_request_has_no_file_part(configured_store):
    handler = RecordingHandler()
    proxy = _proxy(configured_store, handler)

    await proxy.forward(None, {"metadata_only": "true", "file_name": "big.pdf", "file_size": "3145728"})

    body = handler.requests[0].content
    assert b'name="metadata_only"' in body
    assert b"filename=" not in body


@pytest.mark.asyncio
async def test_malformed_json_context_is_rejected(configured_store):
    handler = RecordingHandler()
    proxy = _proxy(configured_store, handler)

    with pytest.raises(ValidationError, match="existing_rows"):
        await proxy.forward(_upload(), {"existing_rows": "[{"})

    assert handler.requests == []
