"""
Upload service for SQL dumps.

This is the single place responsible for:
- Filename sanitization (prevent path traversal / OS-specific path artifacts)
- Accepting only `.sql` files under the configured size ceiling
- Decoding the payload to text for the conversion engine

We intentionally keep this independent of FastAPI types to preserve separation of concerns:
the API layer passes raw bytes and a filename string.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple


class UploadError(ValueError):
    """Raised when an upload cannot be safely accepted."""


class UploadTooLargeError(UploadError):
    """Raised when an upload exceeds the configured size ceiling."""


_FILENAME_ALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9.\-_ ]+")

ALLOWED_EXTENSIONS = (".sql",)
CONVERTED_SUFFIX = "_mariadb103"
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True)
class UploadLimits:
    """
    Size limits for uploads.

    If max_upload_bytes is None, no limit is enforced at the application layer.
    (Note: the ASGI server / reverse proxy may still enforce a request size limit.)
    """

    max_upload_bytes: Optional[int] = DEFAULT_MAX_UPLOAD_BYTES


class SqlUploadService:
    """Validates and decodes uploaded SQL dumps."""

    _MAX_FILENAME_LENGTH = 200

    def __init__(self, *, limits: Optional[UploadLimits] = None):
        self._limits = limits or UploadLimits()

    @property
    def limits(self) -> UploadLimits:
        return self._limits

    def sanitize_filename(self, original_filename: str) -> str:
        """
        Sanitize a user-provided filename.

        - Strips any path components (both `/` and `\\` styles)
        - Replaces unsafe characters with `_`
        - Trims to a reasonable length while preserving the extension
        """
        raw = (original_filename or "").strip()
        if not raw:
            return "upload.sql"

        # Handle Windows-style paths sent by some clients
        raw = raw.replace("\\", "/")
        base = os.path.basename(raw).strip()
        base = base.replace("\x00", "")

        # Collapse repeated whitespace
        base = re.sub(r"\s+", " ", base).strip()

        # Replace unsafe characters (keep dots for extensions, hyphens/underscores, spaces)
        base = _FILENAME_ALLOWED_CHARS_RE.sub("_", base)

        # Avoid empty result after sanitization
        if not base or base in {".", ".."}:
            return "upload.sql"

        # Enforce a max length, preserving the extension
        if len(base) > self._MAX_FILENAME_LENGTH:
            stem, ext = os.path.splitext(base)
            if ext and len(ext) < self._MAX_FILENAME_LENGTH:
                base = f"{stem[: self._MAX_FILENAME_LENGTH - len(ext)]}{ext}"
            else:
                base = base[: self._MAX_FILENAME_LENGTH]

        return base

    def validate(self, original_filename: str, size: int) -> str:
        """
        Check name and size of an upload before reading it.

        Returns the sanitized filename.
        """
        safe_name = self.sanitize_filename(original_filename)
        if not safe_name.lower().endswith(ALLOWED_EXTENSIONS):
            raise UploadError(f"Only .sql files are supported (got {safe_name})")
        max_bytes = self._limits.max_upload_bytes
        if max_bytes is not None and size > max_bytes:
            raise UploadTooLargeError(f"File too large: {size} bytes (max: {max_bytes} bytes)")
        return safe_name

    def decode(self, payload: bytes) -> str:
        """Decode an uploaded dump as UTF-8 (a leading BOM is dropped)."""
        try:
            return payload.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise UploadError(
                f"File is not valid UTF-8 (invalid byte at position {e.start}); re-export the dump with utf8mb4"
            ) from e

    def read_upload(self, original_filename: str, payload: bytes) -> Tuple[str, str]:
        """
        Validate and decode an uploaded dump.

        Returns:
            (safe_filename, sql_text)
        """
        safe_name = self.validate(original_filename, len(payload))
        return safe_name, self.decode(payload)


def converted_file_name(file_name: str) -> str:
    """`dump.sql` -> `dump_mariadb103.sql`."""
    base = os.path.basename((file_name or "").replace("\\", "/"))
    stem, _ = os.path.splitext(base)
    return f"{stem or 'converted'}{CONVERTED_SUFFIX}.sql"
