"""Discover release folders and classify them into versions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Sequence

LOGGER = logging.getLogger(__name__)

RELEASE_FOLDER_PATTERN = re.compile(r"^OM\s+(\d+(?:\.\d+){2,3})$")
ARCHIVE_PREFIX = "OM"
DEFAULT_MIN_MAJOR = 15
DEFAULT_UNSTABLE_SENTINEL = "9999"

RejectReason = Literal["not_a_release", "unparsable", "major_too_low", "duplicate_version"]


@dataclass(frozen=True, slots=True)
class ReleaseVersion:
    """One qualifying release folder under the source root."""

    name: str
    version_text: str
    version_tuple: tuple[int, ...]
    source_path: Path
    is_unstable: bool

    @property
    def top_folder(self) -> str:
        """Folder name that roots the archive contents."""

        return self.name

    @property
    def output_base(self) -> str:
        """Base file name shared by the archive and its sidecars."""

        return f"{ARCHIVE_PREFIX}{self.version_text}"


@dataclass(frozen=True, slots=True)
class Accepted:
    version: ReleaseVersion


@dataclass(frozen=True, slots=True)
class Rejected:
    name: str
    reason: RejectReason
    detail: str = ""


Classification = Accepted | Rejected


@dataclass(frozen=True, slots=True)
class VersionDiscovery:
    """Accepted versions (newest first) and the folders that were rejected."""

    versions: list[ReleaseVersion] = field(default_factory=list)
    rejected: list[Rejected] = field(default_factory=list)


def parse_version_text(text: str) -> tuple[int, ...] | None:
    """Parse ``N.N.N[.N]`` into integers; ``None`` if it is not a numeric version."""

    parts = text.split(".")
    if len(parts) not in (3, 4):
        return None
    components: list[int] = []
    for part in parts:
        if not part.isdigit() or not part.isascii():
            return None
        components.append(int(part))
    return tuple(components)


def classify_folder_name(
    name: str,
    source_path: Path,
    *,
    min_major: int = DEFAULT_MIN_MAJOR,
    unstable_sentinel: str = DEFAULT_UNSTABLE_SENTINEL,
) -> Classification:
    """Classify one top-level folder name as an accepted release or a rejection."""

    match = RELEASE_FOLDER_PATTERN.match(name)
    if match is None:
        return Rejected(name=name, reason="not_a_release")

    captured = match.group(1)
    version_tuple = parse_version_text(captured)
    if version_tuple is None:
        return Rejected(name=name, reason="unparsable", detail=captured)
    if version_tuple[0] < min_major:
        return Rejected(name=name, reason="major_too_low", detail=f"major={version_tuple[0]} min={min_major}")

    # Canonical form has no leading zeros.
    version_text = ".".join(str(component) for component in version_tuple)
    return Accepted(
        ReleaseVersion(
            name=name,
            version_text=version_text,
            version_tuple=version_tuple,
            source_path=source_path,
            is_unstable=str(version_tuple[-1]) == unstable_sentinel,
        )
    )


def classify_folder_names(
    entries: Sequence[tuple[str, Path]],
    *,
    min_major: int = DEFAULT_MIN_MAJOR,
    unstable_sentinel: str = DEFAULT_UNSTABLE_SENTINEL,
) -> VersionDiscovery:
    """Classify (name, path) pairs and sort accepted versions newest first."""

    by_tuple: dict[tuple[int, ...], list[ReleaseVersion]] = {}
    rejected: list[Rejected] = []
    for name, path in entries:
        result = classify_folder_name(name, path, min_major=min_major, unstable_sentinel=unstable_sentinel)
        if isinstance(result, Accepted):
            by_tuple.setdefault(result.version.version_tuple, []).append(result.version)
        else:
            rejected.append(result)

    versions: list[ReleaseVersion] = []
    for candidates in by_tuple.values():
        # One folder per version: the canonically spelled name wins, then the first by name.
        candidates.sort(key=lambda item: (item.name != f"{ARCHIVE_PREFIX} {item.version_text}", item.name))
        kept, *duplicates = candidates
        versions.append(kept)
        rejected.extend(
            Rejected(name=item.name, reason="duplicate_version", detail=f"version={kept.version_text} kept={kept.name}")
            for item in duplicates
        )
    versions.sort(key=lambda item: item.version_tuple, reverse=True)
    return VersionDiscovery(versions=versions, rejected=rejected)


def discover_versions(
    source_root: Path,
    *,
    min_major: int = DEFAULT_MIN_MAJOR,
    unstable_sentinel: str = DEFAULT_UNSTABLE_SENTINEL,
    logger: logging.Logger | None = None,
) -> VersionDiscovery:
    """Enumerate top-level directories under ``source_root`` and classify them."""

    effective_logger = logger or LOGGER
    if not source_root.exists():
        effective_logger.warning("versions.source_root_missing source_root=%s", source_root)
        return VersionDiscovery()

    # Links are kept unresolved; the archiver runs from the parent of each release folder.
    root = source_root.absolute()
    entries = [(entry.name, root / entry.name) for entry in sorted(source_root.iterdir()) if entry.is_dir()]
    discovery = classify_folder_names(entries, min_major=min_major, unstable_sentinel=unstable_sentinel)

    for rejection in discovery.rejected:
        if rejection.reason == "not_a_release":
            effective_logger.debug("versions.ignored name=%r", rejection.name)
        elif rejection.reason == "duplicate_version":
            effective_logger.warning("versions.duplicate name=%r detail=%s", rejection.name, rejection.detail)
        else:
            effective_logger.info(
                "versions.rejected name=%r reason=%s detail=%s",
                rejection.name,
                rejection.reason,
                rejection.detail,
            )
    effective_logger.info(
        "versions.discovered accepted=%s rejected=%s unstable=%s",
        len(discovery.versions),
        len(discovery.rejected),
        sum(1 for version in discovery.versions if version.is_unstable),
    )
    return discovery


def select_latest_stable(versions: Sequence[ReleaseVersion]) -> ReleaseVersion | None:
    """Return the stable version with the greatest version tuple, if any."""

    stable = [version for version in versions if not version.is_unstable]
    if not stable:
        return None
    return max(stable, key=lambda item: item.version_tuple)
