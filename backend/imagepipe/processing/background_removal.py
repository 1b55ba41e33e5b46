"""
Background removal through a Replicate-style prediction API.

The work is asynchronous on the provider side:

    1. POST /predictions with the model version and the image as a data URI
    2. poll the status URL returned in urls.get until the prediction reaches
       succeeded / failed / canceled, or the deadline passes
    3. download the output URL into local storage

PredictionPoller holds step 2 as a small state machine
(SUBMITTED → POLLING → SUCCEEDED | FAILED | TIMED_OUT).  Its clock and
sleep are injectable so tests can drive it without waiting.
"""

from __future__ import annotations

import asyncio
import base64
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from imagepipe.core.config import Settings
from imagepipe.core.constants import (
    TERMINAL_PREDICTION_STATUSES,
    PredictionState,
)
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.errors import (
    ProcessingError,
    ProcessingFailed,
    ProcessingTimeout,
    TransportError,
)
from imagepipe.pipeline.schema import RemoveBackgroundParams
from imagepipe.processing.base import ClientResult, ProcessingClient, ResultStore

logger = get_logger(__name__)

DEFAULT_API_BASE_URL = "https://api.replicate.com/v1"
PREDICTION_TIMEOUT = 120    # seconds until a prediction is abandoned
POLL_INTERVAL = 3           # seconds between status requests
REQUEST_TIMEOUT = 30        # per HTTP request

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class PredictionPoller:
    """
    Poll a prediction's status until it reaches a terminal state.

    Args:
        fetch_status: Coroutine function returning the latest status payload.
        timeout: Total seconds allowed from the start of polling.
        interval: Seconds to wait before each status request.
        clock: Monotonic time source.
        sleep: Coroutine used to wait between polls.
    """

    def __init__(
        self,
        fetch_status: Callable[[], Awaitable[dict[str, Any]]],
        timeout: float = PREDICTION_TIMEOUT,
        interval: float = POLL_INTERVAL,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetch_status = fetch_status
        self.timeout = timeout
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self.state = PredictionState.SUBMITTED
        self.polls = 0
        self.last_payload: dict[str, Any] | None = None

    async def wait(self) -> dict[str, Any]:
        """
        Return the final payload of a succeeded prediction.

        Raises:
            ProcessingFailed: the provider reported failed / canceled.
            ProcessingTimeout: no terminal state before the deadline.
            TransportError: a status request failed.
        """
        deadline = self._clock() + self.timeout
        self.state = PredictionState.POLLING

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(self.interval, remaining))

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            try:
                payload = await asyncio.wait_for(self._fetch_status(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            except TransportError:
                self.state = PredictionState.FAILED
                raise

            self.polls += 1
            self.last_payload = payload
            status = payload.get("status", "unknown")

            if status not in TERMINAL_PREDICTION_STATUSES:
                continue
            if status == "succeeded":
                self.state = PredictionState.SUCCEEDED
                return payload

            self.state = PredictionState.FAILED
            error = payload.get("error") or "No error details provided."
            raise ProcessingFailed(f"Prediction {status}. Error: {error}")

        self.state = PredictionState.TIMED_OUT
        raise ProcessingTimeout(
            f"Prediction timed out after {self.timeout:g} seconds",
            timeout_seconds=self.timeout,
        )


class BackgroundRemovalClient(ProcessingClient):
    """Client for the background-removal model on Replicate."""

    name = "background_removal"

    def __init__(
        self,
        api_token: str,
        model_version: str,
        storage: ResultStore,
        base_url: str = DEFAULT_API_BASE_URL,
        request_timeout: float = REQUEST_TIMEOUT,
        poll_timeout: float = PREDICTION_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(storage)
        self._api_token = api_token
        self._model_version = model_version
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._poll_timeout = poll_timeout
        self._poll_interval = poll_interval
        self._transport = transport
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, storage: ResultStore) -> BackgroundRemovalClient:
        return cls(
            api_token=settings.REPLICATE_API_TOKEN,
            model_version=settings.REPLICATE_MODEL_VERSION,
            storage=storage,
            base_url=settings.REPLICATE_API_BASE_URL,
            request_timeout=settings.REPLICATE_REQUEST_TIMEOUT,
            poll_timeout=settings.BACKGROUND_REMOVAL_TIMEOUT,
            poll_interval=settings.BACKGROUND_REMOVAL_POLL_INTERVAL,
        )

    async def remove_background(
        self,
        file: WorkingFile,
        params: RemoveBackgroundParams,
    ) -> ClientResult:
        log = logger.bind(file=file.original_name, file_id=file.identifier)

        try:
            data_uri = await self._data_uri(file)
            async with httpx.AsyncClient(
                timeout=self._request_timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                prediction = await self._request(client, "POST", f"{self._base_url}/predictions", {
                    "version": self._model_version,
                    "input": {"image": data_uri},
                })
                status_url = (prediction.get("urls") or {}).get("get")
                if not prediction.get("id") or not status_url:
                    raise TransportError(
                        "API did not return a valid prediction ID or status URL",
                    )
                log.info("Prediction submitted", prediction_id=prediction["id"])

                poller = PredictionPoller(
                    lambda: self._request(client, "GET", status_url),
                    timeout=self._poll_timeout,
                    interval=self._poll_interval,
                    clock=self._clock,
                    sleep=self._sleep,
                )
                payload = await poller.wait()

            output_url = self._output_url(payload)
            produced = await self._store_result(file, output_url, "bg_removed")
        except ProcessingError as exc:
            log.warning(
                "Background removal failed",
                error_kind=exc.kind.value,
                error=str(exc),
            )
            return ClientResult.failed(exc)

        log.info("Background removed", polls=poller.polls, output=produced.location_ref)
        return ClientResult.succeeded(produced)

    async def _data_uri(self, file: WorkingFile) -> str:
        try:
            content = await asyncio.to_thread(Path(file.location_ref).read_bytes)
        except OSError as exc:
            raise ProcessingFailed(
                f"File does not exist or is not readable: {file.location_ref}",
            ) from exc
        mime_type = file.mime_type or "image/png"
        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"

    @staticmethod
    def _output_url(payload: dict[str, Any]) -> str:
        output = payload.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not isinstance(output, str) or not output:
            raise ProcessingFailed("Prediction succeeded but output is missing")
        return output

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make one authenticated JSON request.

        Raises:
            TransportError: network failure, HTTP error status or bad JSON.
        """
        headers = {
            "Authorization": f"Token {self._api_token}",
            "Accept": "application/json",
        }
        try:
            response = await client.request(method, url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Replicate API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"Replicate API request failed with status code {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                "Failed to decode Replicate API JSON response",
                response_body=response.text[:500],
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError("Replicate API response format unexpected")
        return payload
