"""Temp-file-then-rename writes shared by archives and sidecars."""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def atomic_temp_path(target_path: Path, suffix: str = TEMP_SUFFIX) -> Path:
    """Create a unique temp path next to the target for atomic replacement."""

    return target_path.parent / f".{target_path.name}.{uuid4().hex}{suffix}"


def replace_file(source_path: Path, target_path: Path) -> Path:
    """Move ``source_path`` over ``target_path``.

    ``os.replace`` is atomic on local filesystems. Some network shares refuse
    to rename over an existing file; for those we delete the target and
    rename again, which leaves a short window without the final file but
    never a partially-written one.
    """

    try:
        os.replace(source_path, target_path)
    except PermissionError:
        if not target_path.exists():
            raise
        LOGGER.warning("durable.replace_fallback target=%s", target_path)
        target_path.unlink()
        os.rename(source_path, target_path)
    return target_path


@contextmanager
def durable_write(target_path: Path, suffix: str = TEMP_SUFFIX) -> Iterator[Path]:
    """Yield a temp path; on success it replaces ``target_path``.

    The temp file is removed on every exit path where the rename did not
    happen, including exceptions raised by the caller.
    """

    target_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(target_path, suffix=suffix)
    try:
        yield temp_path
        replace_file(temp_path, target_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


def write_text_atomically(text: str, output_path: Path, *, encoding: str = "utf-8", newline: str = "") -> Path:
    """Write text atomically via temporary file then rename."""

    with durable_write(output_path) as temp_path:
        with temp_path.open("w", encoding=encoding, newline=newline) as handle:
            handle.write(text)
    return output_path


def write_json_atomically(payload: dict[str, Any], output_path: Path) -> Path:
    """Write JSON atomically via temporary file then rename."""

    rendered = json.dumps(payload, indent=2, ensure_ascii=False, default=str) + "\n"
    return write_text_atomically(rendered, output_path)
