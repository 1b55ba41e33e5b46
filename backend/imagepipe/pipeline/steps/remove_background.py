"""
RemoveBackgroundStep — cut the subject out of each image.

Each file is a separate, slow provider job with no degraded result, so
by default the first failure aborts the run.  Set
PIPELINE_CONTINUE_ON_ERROR='{"remove_background": true}' to treat it
like the optimization steps instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from imagepipe.core.constants import Operation
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.schema import RemoveBackgroundParams
from imagepipe.pipeline.step import PipelineStep

if TYPE_CHECKING:
    from imagepipe.processing.base import ClientResult


class RemoveBackgroundStep(PipelineStep):
    """Remove the background via the background-removal client."""

    operation = Operation.REMOVE_BACKGROUND
    description = "Remove image background"
    continue_on_error = False

    async def apply(self, file: WorkingFile, params: RemoveBackgroundParams) -> ClientResult:
        return await self.client.remove_background(file, params)
