"""
OptimizationClient — optimize / resize / convert through one HTTP service.

The service exposes one endpoint per operation (/optimize, /resize,
/convert).  Each accepts a multipart POST with the image in the "image"
field and the step params as plain form fields, authenticated with an
X-API-Key header, and answers with JSON::

    {"status": "success", "outputUrl": "https://.../result.webp"}
    {"status": "error", "message": "unsupported colour space"}

The output URL is downloaded into local storage so later steps (and the
caller) get a local WorkingFile.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import httpx

from imagepipe.core.config import Settings
from imagepipe.core.constants import Operation
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.errors import ProcessingError, ProcessingFailed, TransportError
from imagepipe.pipeline.schema import ConvertParams, OptimizeParams, ResizeParams, StepParams
from imagepipe.processing.base import ClientResult, ProcessingClient, ResultStore

logger = get_logger(__name__)

# Default timeout for API calls (seconds)
DEFAULT_TIMEOUT = 30


class OptimizationClient(ProcessingClient):
    """Client for the image optimization API."""

    name = "optimization_api"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        storage: ResultStore,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Service root, e.g. "https://img-opt.internal".
            api_key: Value sent in the X-API-Key header.
            storage: Where downloaded results are kept.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        super().__init__(storage)
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, storage: ResultStore) -> OptimizationClient:
        return cls(
            base_url=settings.OPTIMIZATION_API_BASE_URL,
            api_key=settings.OPTIMIZATION_API_KEY,
            storage=storage,
            timeout=settings.OPTIMIZATION_API_TIMEOUT,
        )

    async def optimize(self, file: WorkingFile, params: OptimizeParams) -> ClientResult:
        return await self._process(Operation.OPTIMIZE, file, params)

    async def resize(self, file: WorkingFile, params: ResizeParams) -> ClientResult:
        return await self._process(Operation.RESIZE, file, params)

    async def convert(self, file: WorkingFile, params: ConvertParams) -> ClientResult:
        return await self._process(Operation.CONVERT, file, params)

    async def _process(
        self,
        operation: Operation,
        file: WorkingFile,
        params: StepParams,
    ) -> ClientResult:
        try:
            payload = await self._post(f"/{operation.value}", file, params.to_form())
            output_url = payload.get("outputUrl") or payload.get("output_url")
            if not isinstance(output_url, str) or not output_url:
                raise TransportError(
                    f"{operation.value} response did not include an output URL",
                    response_body=str(payload)[:500],
                )
            produced = await self._store_result(file, output_url, operation.value)
        except ProcessingError as exc:
            logger.warning(
                "Optimization API call failed",
                operation=operation.value,
                file=file.original_name,
                error_kind=exc.kind.value,
                error=str(exc),
            )
            return ClientResult.failed(exc)

        logger.info(
            "Optimization API call succeeded",
            operation=operation.value,
            file=file.original_name,
            output=produced.location_ref,
        )
        return ClientResult.succeeded(produced)

    async def _post(
        self,
        endpoint: str,
        file: WorkingFile,
        form: dict[str, str],
    ) -> dict[str, Any]:
        """
        POST one image to the service and return the decoded success payload.

        Raises:
            ProcessingFailed: unreadable input or an explicit error reply.
            TransportError: network failure, HTTP error status or bad JSON.
        """
        path = Path(file.location_ref)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ProcessingFailed(
                f"File does not exist or is not readable: {file.location_ref}",
            ) from exc

        url = f"{self._base_url}{endpoint}"
        files = {"image": (path.name, content, file.mime_type or "application/octet-stream")}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    data=form,
                    files=files,
                    headers={"X-API-Key": self._api_key},
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"API request failed with status code {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                "Failed to decode API JSON response",
                status_code=response.status_code,
                response_body=response.text[:500],
            ) from exc

        if not isinstance(payload, dict):
            raise TransportError("API response format unexpected", response_body=response.text[:500])

        if payload.get("status") == "error":
            raise ProcessingFailed(
                f"API returned an error: {payload.get('message') or 'Unknown API error'}",
            )
        if payload.get("status") != "success":
            raise TransportError(
                "API response format unexpected or indicates failure",
                response_body=response.text[:500],
            )
        return payload
