"""Tests for the optimization API client against a mocked transport."""

import asyncio
import threading
from pathlib import Path

import httpx
import pytest

from imagepipe.core.constants import ErrorKind, Operation
from imagepipe.pipeline.schema import ConvertParams, OptimizeParams, RemoveBackgroundParams, ResizeParams
from imagepipe.processing.optimization_client import OptimizationClient

from helpers import FakeStore

BASE_URL = "https://optimizer.test"


def make_client(handler, storage=None):
    return OptimizationClient(
        base_url=BASE_URL + "/",
        api_key="secret",
        storage=storage or FakeStore(),
        transport=httpx.MockTransport(handler),
    )


def ok(url="https://cdn.test/result.webp"):
    return lambda request: httpx.Response(200, json={"status": "success", "outputUrl": url})


class TestSuccess:
    """Well-formed replies produce a stored, derived WorkingFile."""

    def test_optimize(self, make_files):
        seen = []
        store = FakeStore()

        def handler(request):
            seen.append(request)
            return ok()(request)

        client = make_client(handler, storage=store)
        source = make_files("photo.png")[0]

        result = asyncio.run(client.optimize(source, OptimizeParams(quality=80, format="webp")))

        assert result.is_ok
        assert result.file.parent_id == source.identifier
        assert result.file.identifier != source.identifier
        assert store.calls == [("https://cdn.test/result.webp", "optimize")]

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/optimize"
        assert request.headers["X-API-Key"] == "secret"
        body = request.read()
        assert b'name="image"' in body
        assert b'name="quality"' in body
        assert b"webp" in body

    @pytest.mark.parametrize("operation,params,path", [
        (Operation.RESIZE, ResizeParams(width=320), "/resize"),
        (Operation.CONVERT, ConvertParams(format="png"), "/convert"),
    ])
    def test_endpoint_per_operation(self, make_files, operation, params, path):
        seen = []

        def handler(request):
            seen.append(request)
            return ok()(request)

        client = make_client(handler)
        capability = getattr(client, operation.value)
        result = asyncio.run(capability(make_files("a.png")[0], params))

        assert result.is_ok
        assert seen[0].url.path == path

    def test_reads_input_off_the_event_loop(self, make_files, monkeypatch):
        source = make_files("a.png")[0]
        readers = []
        original = Path.read_bytes

        def read_bytes(path):
            readers.append(threading.current_thread())
            return original(path)

        monkeypatch.setattr(Path, "read_bytes", read_bytes)
        result = asyncio.run(make_client(ok()).optimize(source, OptimizeParams()))

        assert result.is_ok
        assert readers and threading.main_thread() not in readers

    def test_snake_case_output_url(self, make_files):
        client = make_client(lambda request: httpx.Response(200, json={"status": "success", "output_url": "https://cdn.test/o.png"}))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.is_ok

    def test_unset_params_are_not_sent(self, make_files):
        seen = []

        def handler(request):
            seen.append(request)
            return ok()(request)

        client = make_client(handler)
        asyncio.run(client.resize(make_files("a.png")[0], ResizeParams(height=200)))

        body = seen[0].read()
        assert b'name="height"' in body
        assert b'name="width"' not in body


class TestFailures:
    """Every failure comes back as a value, never raised."""

    def test_provider_error_reply(self, make_files):
        client = make_client(lambda request: httpx.Response(200, json={"status": "error", "message": "unsupported colour space"}))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.PROCESSING_FAILED
        assert "unsupported colour space" in str(result.error)

    def test_http_500(self, make_files):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR
        assert result.error.status_code == 500
        assert result.error.response_body == "boom"

    def test_invalid_json(self, make_files):
        client = make_client(lambda request: httpx.Response(200, text="<html>not json</html>"))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR

    def test_connect_error(self, make_files):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR

    def test_request_timeout(self, make_files):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR

    @pytest.mark.parametrize("payload", [
        {"status": "success"},
        {"status": "queued", "outputUrl": "https://cdn.test/x.png"},
        ["not", "an", "object"],
    ])
    def test_unexpected_shapes(self, make_files, payload):
        client = make_client(lambda request: httpx.Response(200, json=payload))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR

    def test_result_not_retrievable(self, make_files):
        client = make_client(ok(), storage=FakeStore(returns_none=True))
        result = asyncio.run(client.optimize(make_files("a.png")[0], OptimizeParams()))
        assert result.error_kind == ErrorKind.PROCESSING_FAILED

    def test_missing_input_file(self, make_files):
        client = make_client(ok())
        source = make_files("a.png")[0].derive(location_ref="/nonexistent/a.png")
        result = asyncio.run(client.optimize(source, OptimizeParams()))
        assert result.error_kind == ErrorKind.PROCESSING_FAILED

    def test_background_removal_unsupported(self, make_files):
        client = make_client(ok())
        result = asyncio.run(client.remove_background(make_files("a.png")[0], RemoveBackgroundParams()))
        assert result.error_kind == ErrorKind.PROCESSING_FAILED
        assert "does not support" in str(result.error)
