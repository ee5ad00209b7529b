"""Deterministic fingerprint over an included-file set."""

from __future__ import annotations

import hashlib
from typing import Iterable

from om_publish.inclusion import CANONICAL_SEPARATOR, IncludedFile

LINE_TERMINATOR = "\n"


def fingerprint_line(file: IncludedFile, top_folder: str) -> str:
    """Render ``<top>\\<relative>|<size>|<ticks>`` for one file."""

    return f"{top_folder}{CANONICAL_SEPARATOR}{file.relative_path}|{file.size_bytes}|{file.mtime_ticks}"


def fingerprint_lines(files: Iterable[IncludedFile], top_folder: str) -> list[str]:
    """Return fingerprint lines sorted as plain text, independent of input order."""

    return sorted(fingerprint_line(file, top_folder) for file in files)


def compute_fingerprint(files: Iterable[IncludedFile], top_folder: str) -> str:
    """Return the lowercase SHA-256 hex digest identifying the file set.

    Only path, size and modification time contribute; file contents are
    never read, so an edit that keeps size and mtime is not detected.
    """

    payload = LINE_TERMINATOR.join(fingerprint_lines(files, top_folder))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
