"""Builds the storage and engine objects shared by the API and the worker."""

from __future__ import annotations

from imagepipe.core.config import Settings
from imagepipe.pipeline.engine import PipelineEngine
from imagepipe.pipeline.step_resolver import StepResolver, build_step_registry
from imagepipe.processing import BackgroundRemovalClient, OptimizationClient
from imagepipe.storage.file_handler import FileStorage


def build_storage(settings: Settings) -> FileStorage:
    return FileStorage.from_settings(settings)


def build_engine(settings: Settings, storage: FileStorage) -> PipelineEngine:
    """Engine wired to both remote providers, with the configured failure policy."""
    registry = build_step_registry(
        OptimizationClient.from_settings(settings, storage),
        BackgroundRemovalClient.from_settings(settings, storage),
        continue_on_error=settings.PIPELINE_CONTINUE_ON_ERROR,
    )
    return PipelineEngine(
        StepResolver(registry),
        max_concurrency=settings.PIPELINE_MAX_CONCURRENCY,
    )
