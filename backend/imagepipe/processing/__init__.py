"""
Processing clients — adapters over the remote services that actually
transform images.
"""

from imagepipe.processing.base import ClientResult, ProcessingClient, ResultStore
from imagepipe.processing.background_removal import BackgroundRemovalClient, PredictionPoller
from imagepipe.processing.optimization_client import OptimizationClient

__all__ = [
    "BackgroundRemovalClient",
    "ClientResult",
    "OptimizationClient",
    "PredictionPoller",
    "ProcessingClient",
    "ResultStore",
]
