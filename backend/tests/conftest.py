"""Pytest configuration and shared fixtures."""

import os
import tempfile

# Settings are read once at import time; point uploads at a scratch
# directory before anything imports imagepipe.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="imagepipe-test-"))
os.environ.setdefault("APP_ENV", "test")

import pytest

from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.engine import PipelineEngine
from imagepipe.pipeline.step_resolver import StepResolver, build_step_registry
from imagepipe.storage.file_handler import FileStorage

from helpers import FakeClient, image_bytes


@pytest.fixture
def storage(tmp_path):
    """Empty upload directory under pytest's tmp_path."""
    return FileStorage(tmp_path / "uploads")


@pytest.fixture
def make_files(tmp_path):
    """Factory for WorkingFiles backed by real PNG files on disk."""

    def _make(*names: str) -> list[WorkingFile]:
        files = []
        for name in names:
            path = tmp_path / name
            path.write_bytes(image_bytes())
            files.append(WorkingFile(
                identifier=f"id-{name}",
                original_name=name,
                size_bytes=path.stat().st_size,
                mime_type="image/png",
                location_ref=str(path),
                public_url=f"/uploads/{name}",
            ))
        return files

    return _make


@pytest.fixture
def optimization_client():
    return FakeClient()


@pytest.fixture
def background_client():
    return FakeClient()


@pytest.fixture
def make_engine(optimization_client, background_client):
    """Factory for an engine wired to the fake clients."""

    def _make(continue_on_error=None, max_concurrency=4) -> PipelineEngine:
        registry = build_step_registry(
            optimization_client,
            background_client,
            continue_on_error=continue_on_error,
        )
        return PipelineEngine(StepResolver(registry), max_concurrency=max_concurrency)

    return _make
