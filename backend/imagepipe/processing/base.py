"""
Processing client interface.

A processing client exposes one coroutine per operation.  Every
capability takes one WorkingFile plus the step's typed params and
returns a ClientResult; failures (network, provider, timeout) come back
as values and are never raised to the caller.

Clients that return a remote reference instead of bytes hand it to a
ResultStore, which downloads and stores it as a new WorkingFile.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from typing import Protocol

from imagepipe.core.constants import ErrorKind, Operation
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.errors import ProcessingError, ProcessingFailed, StorageError
from imagepipe.pipeline.schema import (
    ConvertParams,
    OptimizeParams,
    RemoveBackgroundParams,
    ResizeParams,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientResult:
    """Either a produced file or the error that prevented it."""

    file: WorkingFile | None = None
    error: ProcessingError | None = None

    @classmethod
    def succeeded(cls, file: WorkingFile) -> ClientResult:
        return cls(file=file)

    @classmethod
    def failed(cls, error: ProcessingError) -> ClientResult:
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None and self.file is not None

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None


class ResultStore(Protocol):
    """Storage collaborator that can fetch and keep a remote result."""

    async def persist(self, remote_ref: str, prefix: str) -> WorkingFile | None:
        ...


class ProcessingClient(ABC):
    """
    Base class for clients of remote image-processing services.

    Subclasses override the capabilities they support.  Calling an
    unsupported capability returns a ProcessingFailed result.
    """

    name: str = "processing_client"

    def __init__(self, storage: ResultStore) -> None:
        self.storage = storage

    async def optimize(self, file: WorkingFile, params: OptimizeParams) -> ClientResult:
        return self._unsupported(Operation.OPTIMIZE)

    async def resize(self, file: WorkingFile, params: ResizeParams) -> ClientResult:
        return self._unsupported(Operation.RESIZE)

    async def convert(self, file: WorkingFile, params: ConvertParams) -> ClientResult:
        return self._unsupported(Operation.CONVERT)

    async def remove_background(
        self,
        file: WorkingFile,
        params: RemoveBackgroundParams,
    ) -> ClientResult:
        return self._unsupported(Operation.REMOVE_BACKGROUND)

    # ─── Helpers available to all clients ──────────────

    def _unsupported(self, operation: Operation) -> ClientResult:
        return ClientResult.failed(ProcessingFailed(
            f"{self.name} does not support '{operation.value}'",
        ))

    async def _store_result(
        self,
        source: WorkingFile,
        remote_ref: str,
        prefix: str,
    ) -> WorkingFile:
        """
        Persist a remote result and link it to the file it came from.

        Raises:
            ProcessingFailed: if the result could not be fetched or stored.
        """
        try:
            stored = await self.storage.persist(remote_ref, prefix)
        except StorageError as exc:
            raise ProcessingFailed(f"Failed to store processed image: {exc}") from exc

        if stored is None:
            raise ProcessingFailed(
                f"Failed to retrieve or save processed image for '{source.original_name}'",
            )

        logger.debug(
            "Result stored",
            client=self.name,
            source=source.identifier,
            location=stored.location_ref,
        )
        return source.derive(
            identifier=stored.identifier,
            size_bytes=stored.size_bytes,
            mime_type=stored.mime_type,
            location_ref=stored.location_ref,
            public_url=stored.public_url,
        )
