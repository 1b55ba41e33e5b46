"""
FileStorage — the upload directory that pipeline files live in.

Uploads are written here before a run (intake), results fetched from
remote providers are downloaded here (persist), and old files are swept
periodically (cleanup_old_files, run by the Celery beat schedule).

Every stored file gets a collision-free name:

    <prefix>_<unix time>_<16 hex chars>.<ext>
"""

from __future__ import annotations

import asyncio
import mimetypes
import os
import re
import secrets
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import Any, Iterable
from urllib.parse import urlparse

import httpx

from imagepipe.core.config import Settings
from imagepipe.core.constants import ALLOWED_MIME_TYPES, MIME_EXTENSIONS
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import WorkingFile
from imagepipe.pipeline.errors import StorageError
from imagepipe.storage.upload_validator import (
    IncomingFile,
    detect_mime_type,
    validate_upload,
    validate_uploads,
)

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 10 * 1024 * 1024
DEFAULT_DOWNLOAD_TIMEOUT = 60
PROTECTED_FILES = frozenset({".gitkeep", ".htaccess"})


class FileStorage:
    """Local upload directory exposed under a public URL path."""

    def __init__(
        self,
        upload_dir: str | Path,
        url_path: str = "/uploads",
        max_size: int = DEFAULT_MAX_SIZE,
        allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.upload_dir = Path(upload_dir).resolve()
        self.url_path = "/" + url_path.strip("/")
        self.max_size = max_size
        self.allowed_mime_types = tuple(allowed_mime_types)
        self._download_timeout = download_timeout
        self._transport = transport

        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Upload directory could not be created: {self.upload_dir}") from exc
        if not os.access(self.upload_dir, os.W_OK):
            raise StorageError(f"Upload directory is not writable: {self.upload_dir}")

    @classmethod
    def from_settings(cls, settings: Settings) -> FileStorage:
        return cls(
            upload_dir=settings.UPLOAD_DIR,
            url_path=settings.UPLOAD_URL_PATH,
            max_size=settings.MAX_UPLOAD_SIZE,
            download_timeout=settings.RESULT_DOWNLOAD_TIMEOUT,
        )

    # ─── Naming / addressing ───────────────────────────

    @staticmethod
    def generate_unique_filename(original_name: str, prefix: str = "") -> str:
        extension = PurePosixPath(original_name).suffix.lstrip(".")
        safe_extension = re.sub(r"[^a-zA-Z0-9]", "", extension).lower() or "tmp"
        safe_prefix = re.sub(r"[^a-zA-Z0-9_-]", "", prefix)
        stem = f"{int(time.time())}_{secrets.token_hex(8)}"
        return f"{safe_prefix}_{stem}.{safe_extension}" if safe_prefix else f"{stem}.{safe_extension}"

    def url_for(self, filename: str) -> str:
        return f"{self.url_path}/{filename}"

    def path_for_url(self, url_path: str | None) -> Path | None:
        """Map a public URL produced by url_for() back to its path."""
        if not url_path or not url_path.startswith(self.url_path + "/"):
            return None
        return self.upload_dir / PurePosixPath(url_path).name

    # ─── Intake ────────────────────────────────────────

    def validate_uploads(self, files: Iterable[IncomingFile]) -> dict[str, list[str]]:
        return validate_uploads(files, self.max_size, self.allowed_mime_types)

    def intake(self, files: Iterable[IncomingFile]) -> list[WorkingFile]:
        """
        Store every acceptable upload and return a WorkingFile for each.

        Uploads that fail validation or cannot be written are logged and
        left out of the result.
        """
        stored: list[WorkingFile] = []
        for incoming in files:
            original_name = PurePosixPath(incoming.filename or "upload").name
            errors = validate_upload(incoming, self.max_size, self.allowed_mime_types)
            if errors:
                logger.warning("Upload rejected", filename=original_name, errors=errors)
                continue

            filename = self.generate_unique_filename(original_name, "upload")
            destination = self.upload_dir / filename
            try:
                destination.write_bytes(incoming.content)
            except OSError as exc:
                logger.error("Failed to store upload", filename=original_name, error=str(exc))
                continue

            stored.append(WorkingFile(
                identifier=uuid.uuid4().hex,
                original_name=original_name,
                size_bytes=incoming.size,
                mime_type=detect_mime_type(incoming.content) or "application/octet-stream",
                location_ref=str(destination),
                public_url=self.url_for(filename),
            ))
            logger.info("Upload stored", filename=original_name, path=str(destination))

        return stored

    # ─── Remote results ────────────────────────────────

    async def persist(self, remote_ref: str, prefix: str = "processed") -> WorkingFile | None:
        """
        Download a remote result into the upload directory.

        Returns None if the reference is not an http(s) URL, the download
        fails, or the body is empty.
        """
        parsed = urlparse(remote_ref or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.error("Invalid result reference", remote_ref=remote_ref)
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(remote_ref)
        except httpx.HTTPError as exc:
            logger.error("Result download failed", remote_ref=remote_ref, error=str(exc))
            return None

        if response.status_code >= 400 or not response.content:
            logger.error(
                "Result download failed",
                remote_ref=remote_ref,
                status_code=response.status_code,
                empty=not response.content,
            )
            return None

        content = response.content
        guessed_name = PurePosixPath(parsed.path).name or "downloaded_file"
        mime_type = (
            detect_mime_type(content)
            or mimetypes.guess_type(guessed_name)[0]
            or "application/octet-stream"
        )
        if mime_type in MIME_EXTENSIONS:
            guessed_name = f"{PurePosixPath(guessed_name).stem}.{MIME_EXTENSIONS[mime_type]}"
        elif not PurePosixPath(guessed_name).suffix:
            guessed_name += ".tmp"

        filename = self.generate_unique_filename(guessed_name, prefix)
        destination = self.upload_dir / filename
        try:
            await asyncio.to_thread(destination.write_bytes, content)
        except OSError as exc:
            logger.error("Failed to save downloaded file", path=str(destination), error=str(exc))
            return None

        logger.info("Result stored", remote_ref=remote_ref, path=str(destination))
        return WorkingFile(
            identifier=uuid.uuid4().hex,
            original_name=guessed_name,
            size_bytes=len(content),
            mime_type=mime_type,
            location_ref=str(destination),
            public_url=self.url_for(filename),
        )

    # ─── Housekeeping ──────────────────────────────────

    def delete_file(self, filename: str) -> bool:
        """
        Delete one file from the upload directory.

        Names containing path separators, "." / "..", or resolving outside
        the directory are refused.  Deleting a missing file succeeds.
        """
        if "/" in filename or "\\" in filename or filename in ("", ".", ".."):
            logger.warning("Invalid filename provided for deletion", filename=filename)
            return False

        path = (self.upload_dir / filename).resolve()
        if path.parent != self.upload_dir:
            logger.warning("Attempt to delete file outside upload directory", path=str(path))
            return False

        if path.is_file():
            try:
                path.unlink()
            except OSError as exc:
                logger.error("Failed to delete file", path=str(path), error=str(exc))
                return False
        return True

    def cleanup_old_files(self, max_age_seconds: int = 86400, now: float | None = None) -> dict[str, Any]:
        """Delete files older than `max_age_seconds`; returns counts."""
        now = time.time() if now is None else now
        deleted = 0
        errors = 0

        for path in self.upload_dir.iterdir():
            if not path.is_file() or path.name in PROTECTED_FILES:
                continue
            try:
                if now - path.stat().st_mtime > max_age_seconds:
                    path.unlink()
                    deleted += 1
            except OSError as exc:
                logger.error("Cleanup failed to delete old file", path=str(path), error=str(exc))
                errors += 1

        logger.info("Upload cleanup finished", deleted=deleted, errors=errors)
        return {"status": "success", "deleted": deleted, "errors": errors}
