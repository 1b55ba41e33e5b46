"""Shared dependencies for API routes."""

from __future__ import annotations

from functools import lru_cache

from fastapi import UploadFile

from imagepipe.core.config import settings
from imagepipe.factory import build_engine, build_storage
from imagepipe.pipeline.engine import PipelineEngine
from imagepipe.storage.file_handler import FileStorage
from imagepipe.storage.upload_validator import IncomingFile


@lru_cache
def get_storage() -> FileStorage:
    """The process-wide upload directory."""
    return build_storage(settings)


@lru_cache
def get_engine() -> PipelineEngine:
    return build_engine(settings, get_storage())


async def read_uploads(uploads: list[UploadFile]) -> list[IncomingFile]:
    """Read multipart uploads into memory for validation and intake."""
    incoming = []
    for upload in uploads:
        incoming.append(IncomingFile(
            filename=upload.filename or "",
            content=await upload.read(),
            content_type=upload.content_type,
        ))
    return incoming
