"""Fakes and builders shared by the test modules."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Iterable

from PIL import Image

from imagepipe.core.constants import Operation
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.errors import ProcessingError, ProcessingFailed
from imagepipe.processing.base import ClientResult, ProcessingClient


def image_bytes(fmt: str = "PNG", size: tuple[int, int] = (4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeStore:
    """ResultStore that records persist() calls instead of downloading."""

    def __init__(self, returns_none: bool = False) -> None:
        self.returns_none = returns_none
        self.calls: list[tuple[str, str]] = []

    async def persist(self, remote_ref: str, prefix: str) -> WorkingFile | None:
        self.calls.append((remote_ref, prefix))
        if self.returns_none:
            return None
        name = remote_ref.rsplit("/", 1)[-1]
        return WorkingFile(
            identifier=f"stored-{len(self.calls)}",
            original_name=name,
            size_bytes=42,
            mime_type="image/png",
            location_ref=f"/tmp/{prefix}_{name}",
            public_url=f"/uploads/{prefix}_{name}",
        )


class FakeClient(ProcessingClient):
    """
    Processing client that succeeds for every file except those named in
    `fail_names`, and records each call as (operation, original_name).
    """

    name = "fake"

    def __init__(
        self,
        fail_names: Iterable[str] = (),
        error_cls: type[ProcessingError] = ProcessingFailed,
        delays: dict[str, float] | None = None,
    ) -> None:
        super().__init__(storage=FakeStore())
        self.fail_names = set(fail_names)
        self.error_cls = error_cls
        self.delays = delays or {}
        self.calls: list[tuple[Operation, str]] = []

    async def _handle(self, operation: Operation, file: WorkingFile) -> ClientResult:
        self.calls.append((operation, file.original_name))
        if file.original_name in self.delays:
            await asyncio.sleep(self.delays[file.original_name])
        if file.original_name in self.fail_names:
            return ClientResult.failed(
                self.error_cls(f"{operation.value} failed for {file.original_name}"),
            )
        return ClientResult.succeeded(
            file.derive(location_ref=f"{file.location_ref}.{operation.value}"),
        )

    async def optimize(self, file, params):
        return await self._handle(Operation.OPTIMIZE, file)

    async def resize(self, file, params):
        return await self._handle(Operation.RESIZE, file)

    async def convert(self, file, params):
        return await self._handle(Operation.CONVERT, file)

    async def remove_background(self, file, params):
        return await self._handle(Operation.REMOVE_BACKGROUND, file)


class ExplodingClient(FakeClient):
    """Raises instead of returning a result."""

    async def optimize(self, file, params):
        self.calls.append((Operation.OPTIMIZE, file.original_name))
        raise RuntimeError("disk on fire")
