"""
Optimization-class steps — optimize, resize and convert.

All three are batch-tolerant: one file failing does not stop the others
in the same step.  The failed file is recorded and left out of the next
step's input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from imagepipe.core.constants import Operation
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.schema import ConvertParams, OptimizeParams, ResizeParams
from imagepipe.pipeline.step import PipelineStep

if TYPE_CHECKING:
    from imagepipe.processing.base import ClientResult


class OptimizeStep(PipelineStep):
    """Recompress an image, optionally changing quality / format."""

    operation = Operation.OPTIMIZE
    description = "Optimize image size and quality"
    continue_on_error = True

    async def apply(self, file: WorkingFile, params: OptimizeParams) -> ClientResult:
        return await self.client.optimize(file, params)


class ResizeStep(PipelineStep):
    """Scale an image to the requested width / height."""

    operation = Operation.RESIZE
    description = "Resize image dimensions"
    continue_on_error = True

    async def apply(self, file: WorkingFile, params: ResizeParams) -> ClientResult:
        return await self.client.resize(file, params)


class ConvertStep(PipelineStep):
    """Re-encode an image in another format."""

    operation = Operation.CONVERT
    description = "Convert image format"
    continue_on_error = True

    async def apply(self, file: WorkingFile, params: ConvertParams) -> ClientResult:
        return await self.client.convert(file, params)
