"""Filesystem-backed blob store for uploaded CV documents."""

from __future__ import annotations

import logging
import re
import time
import uuid
from pathlib import Path

from cv_screener.errors import DocumentMissingError

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENTS_DIR = Path.home() / ".cv-screener" / "documents"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class DocumentStore:
    """Stores each document as a file named ``<millis>-<random>-<filename>``.

    The returned ref is the bare file name; refs never contain path separators.
    """

    def __init__(self, root: str | Path = DEFAULT_DOCUMENTS_DIR):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def put(self, data: bytes, filename: str | None = None) -> str:
        """Persist a document and return its ref."""
        stem = _UNSAFE_CHARS.sub("_", Path(filename or "document").name).strip("._") or "document"
        ref = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{stem}"
        self._path(ref).write_bytes(data)
        logger.debug("Stored document %s (%d bytes)", ref, len(data))
        return ref

    def get(self, ref: str) -> bytes:
        path = self._path(ref)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise DocumentMissingError(f"Stored document not found: {ref}") from None

    def exists(self, ref: str) -> bool:
        return self._path(ref).is_file()

    def delete(self, ref: str) -> bool:
        """Delete a document. Returns False if it was already gone."""
        try:
            self._path(ref).unlink()
        except FileNotFoundError:
            return False
        return True

    def _path(self, ref: str) -> Path:
        if not ref or ref != Path(ref).name or ref in (".", ".."):
            raise ValueError(f"Invalid document ref: {ref!r}")
        return self.root / ref
