"""
StepResolver — maps an operation to the step that performs it.

The registry is built once per engine from the available processing
clients.  The per-operation failure policy defaults to what each step
class declares and can be overridden from configuration:

    PIPELINE_CONTINUE_ON_ERROR='{"remove_background": true}'

To add a new operation:
    1. Add it to Operation and STEP_SCHEMA
    2. Create a PipelineStep subclass in steps/
    3. Register it in build_step_registry() below
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from imagepipe.core.constants import Operation
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.errors import StepResolutionError
from imagepipe.pipeline.step import PipelineStep
from imagepipe.pipeline.steps.optimization import ConvertStep, OptimizeStep, ResizeStep
from imagepipe.pipeline.steps.remove_background import RemoveBackgroundStep

if TYPE_CHECKING:
    from imagepipe.processing.base import ProcessingClient

logger = get_logger(__name__)


def build_step_registry(
    optimization_client: ProcessingClient,
    background_client: ProcessingClient,
    continue_on_error: Mapping[str, bool] | None = None,
) -> dict[Operation, PipelineStep]:
    """
    Create one step per operation, wired to the client that serves it.

    Args:
        optimization_client: Serves optimize / resize / convert.
        background_client: Serves remove_background.
        continue_on_error: Optional per-operation policy overrides keyed
            by operation value.
    """
    overrides = dict(continue_on_error or {})
    unknown = set(overrides) - {op.value for op in Operation}
    if unknown:
        logger.warning("Ignoring failure-policy overrides for unknown operations", unknown=sorted(unknown))

    steps: list[PipelineStep] = [
        OptimizeStep(optimization_client, overrides.get(Operation.OPTIMIZE.value)),
        ResizeStep(optimization_client, overrides.get(Operation.RESIZE.value)),
        ConvertStep(optimization_client, overrides.get(Operation.CONVERT.value)),
        RemoveBackgroundStep(background_client, overrides.get(Operation.REMOVE_BACKGROUND.value)),
    ]
    return {step.operation: step for step in steps}


class StepResolver:
    """
    Resolves an operation to its registered PipelineStep.

    A resolver with a partial registry (e.g. only the optimization
    client configured) rejects the missing operations at run time with
    StepResolutionError.
    """

    def __init__(self, registry: Mapping[Operation, PipelineStep]) -> None:
        self.registry = dict(registry)

    def resolve(self, operation: Operation) -> PipelineStep:
        """
        Return the step for an operation.

        Raises:
            StepResolutionError: If no step is registered for it.
        """
        step = self.registry.get(operation)
        if step is None:
            raise StepResolutionError(
                f"Unsupported pipeline operation: {operation.value}",
                step_name=operation.value,
                details={"available": self.list_available_operations()},
            )
        return step

    def list_available_operations(self) -> list[str]:
        """Return all registered operation names."""
        return [op.value for op in self.registry]
