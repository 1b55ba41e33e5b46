"""Upload checks — size limits and content-sniffed MIME types."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from imagepipe.core.constants import ALLOWED_MIME_TYPES


@dataclass(frozen=True)
class IncomingFile:
    """One uploaded file as received by the HTTP layer."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


def detect_mime_type(content: bytes) -> str | None:
    """Identify an image from its bytes; None if Pillow cannot read it."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            return Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None


def validate_upload(
    incoming: IncomingFile,
    max_size: int,
    allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
) -> list[str]:
    """Return the problems with one upload; empty if it is acceptable."""
    name = incoming.filename or "unnamed file"

    if incoming.size == 0:
        return [f"File '{name}' is empty."]

    errors = []
    if incoming.size > max_size:
        errors.append(
            f"File '{name}' exceeds the application size limit "
            f"({max_size / 1024 / 1024:g} MB)."
        )

    allowed = tuple(allowed_mime_types)
    mime_type = detect_mime_type(incoming.content)
    if mime_type not in allowed:
        errors.append(
            f"File '{name}' has an invalid type ('{mime_type or 'unknown'}'). "
            f"Allowed types: {', '.join(allowed)}"
        )
    return errors


def validate_uploads(
    files: Iterable[IncomingFile],
    max_size: int,
    allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
) -> dict[str, list[str]]:
    """Errors per filename for every upload that failed; empty if all passed."""
    allowed = tuple(allowed_mime_types)
    all_errors: dict[str, list[str]] = {}
    for index, incoming in enumerate(files):
        errors = validate_upload(incoming, max_size, allowed)
        if errors:
            all_errors[incoming.filename or f"file_{index}"] = errors
    return all_errors
