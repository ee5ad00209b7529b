"""Manifest and fingerprint sidecars published next to each archive."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from om_publish.durable import write_json_atomically, write_text_atomically
from om_publish.inclusion import IncludedFile
from om_publish.versions import ReleaseVersion

LOGGER = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"
MANIFEST_SUFFIX = ".manifest.json"
FINGERPRINT_SUFFIX = ".sha256"


@dataclass(frozen=True, slots=True)
class ArtifactPaths:
    """Locations of the archive and sidecars for one output base name."""

    base: str
    archive: Path
    manifest: Path
    fingerprint: Path


def artifact_paths(output_root: Path, base: str) -> ArtifactPaths:
    return ArtifactPaths(
        base=base,
        archive=output_root / f"{base}{ARCHIVE_SUFFIX}",
        manifest=output_root / f"{base}{MANIFEST_SUFFIX}",
        fingerprint=output_root / f"{base}{FINGERPRINT_SUFFIX}",
    )


def build_manifest(
    version: ReleaseVersion,
    files: Sequence[IncludedFile],
    generated_at: datetime,
) -> dict[str, Any]:
    """Describe the archive contents; ``files`` keep their relative-path order."""

    entries = [
        {
            "path": file.relative_path,
            "length": file.size_bytes,
            "lastModifiedUtc": file.last_modified_utc.isoformat(),
        }
        for file in files
    ]
    return {
        "sourcePath": str(version.source_path),
        "topFolder": version.top_folder,
        "fileCount": len(entries),
        "totalBytes": sum(file.size_bytes for file in files),
        "generatedUtc": generated_at.isoformat(),
        "files": entries,
    }


def write_manifest(manifest: dict[str, Any], path: Path) -> Path:
    return write_json_atomically(manifest, path)


def write_fingerprint(fingerprint: str, path: Path) -> Path:
    """Write the digest as a single lowercase line with no other metadata."""

    return write_text_atomically(fingerprint.strip().lower() + "\n", path, encoding="ascii")


def read_fingerprint(path: Path, logger: logging.Logger | None = None) -> str | None:
    """Return the persisted digest, or ``None`` when absent, empty or unreadable."""

    effective_logger = logger or LOGGER
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="ascii").strip().lower()
    except (OSError, UnicodeDecodeError) as exc:
        effective_logger.warning("sidecars.fingerprint_unreadable path=%s error=%s", path, exc)
        return None
    return text or None


def read_manifest(path: Path, logger: logging.Logger | None = None) -> dict[str, Any] | None:
    """Load a manifest sidecar if it exists and parses as a JSON object."""

    effective_logger = logger or LOGGER
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        effective_logger.warning("sidecars.manifest_unreadable path=%s error=%s", path, exc)
        return None
    return data if isinstance(data, dict) else None
