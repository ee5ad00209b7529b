"""Select the files of a release that belong in its archive."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

from om_publish.utils.time_utils import ns_to_ticks, utc_from_ns

LOGGER = logging.getLogger(__name__)

CANONICAL_SEPARATOR = "\\"

# Files under the add-in subtree are left out, except its _universal child.
EXCLUDED_SUBTREE: tuple[str, ...] = ("om-apps", "omofficeaddin")
INCLUDED_CHILD = "_universal"


@dataclass(frozen=True, slots=True)
class IncludedFile:
    """A regular file selected for packaging."""

    absolute_path: Path
    relative_path: str
    size_bytes: int
    mtime_ns: int

    @property
    def mtime_ticks(self) -> int:
        return ns_to_ticks(self.mtime_ns)

    @property
    def last_modified_utc(self) -> datetime:
        return utc_from_ns(self.mtime_ns)

    @property
    def relative_parts(self) -> tuple[str, ...]:
        return tuple(self.relative_path.split(CANONICAL_SEPARATOR))


def split_relative(relative: str) -> tuple[str, ...]:
    """Split a relative path on either separator, dropping empty segments."""

    return tuple(part for part in relative.replace("/", "\\").split("\\") if part not in ("", "."))


def canonical_relative_path(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` joined with the canonical separator."""

    return CANONICAL_SEPARATOR.join(split_relative(os.path.relpath(path, root)))


def is_included(relative_parts: Sequence[str]) -> bool:
    """Apply the add-in override rule to a relative path split into segments.

    Segments are compared whole and case-insensitively, so a sibling such
    as ``omofficeaddin2`` is never treated as the excluded subtree.
    """

    lowered = [part.lower() for part in relative_parts]
    depth = len(EXCLUDED_SUBTREE)
    # The last segment is the file name; the subtree must be made of directories.
    if len(lowered) <= depth or tuple(lowered[:depth]) != EXCLUDED_SUBTREE:
        return True
    return len(lowered) > depth + 1 and lowered[depth] == INCLUDED_CHILD


def resolve_included_files(source_path: Path, logger: logging.Logger | None = None) -> list[IncludedFile]:
    """Walk a release tree and return the included files sorted by relative path.

    Directory symlinks are not followed. Errors while listing directories or
    reading file metadata propagate to the caller.
    """

    effective_logger = logger or LOGGER
    included: list[IncludedFile] = []
    excluded_count = 0

    def _raise(exc: OSError) -> None:
        raise exc

    for dir_path, dir_names, file_names in os.walk(source_path, onerror=_raise):
        dir_names.sort()
        for file_name in sorted(file_names):
            absolute = Path(dir_path) / file_name
            if not absolute.is_file():
                continue
            relative = canonical_relative_path(absolute, source_path)
            if not is_included(split_relative(relative)):
                excluded_count += 1
                continue
            stats = absolute.stat()
            included.append(
                IncludedFile(
                    absolute_path=absolute,
                    relative_path=relative,
                    size_bytes=stats.st_size,
                    mtime_ns=stats.st_mtime_ns,
                )
            )

    included.sort(key=lambda item: item.relative_path)
    effective_logger.debug(
        "inclusion.resolved source_path=%s included=%s excluded=%s",
        source_path,
        len(included),
        excluded_count,
    )
    return included
