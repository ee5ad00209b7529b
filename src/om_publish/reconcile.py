"""Remove published artifacts whose source release has disappeared."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from om_publish.sidecars import ARCHIVE_SUFFIX, FINGERPRINT_SUFFIX, MANIFEST_SUFFIX
from om_publish.versions import ReleaseVersion

LOGGER = logging.getLogger(__name__)

ARCHIVE_BASE_PATTERN = re.compile(r"^OM\d+(?:\.\d+){2,3}$", re.ASCII)


@dataclass(slots=True)
class ReconcileResult:
    """Orphaned bases found and the files removed (or that could not be)."""

    orphans: list[str] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)


def expected_bases(versions: Iterable[ReleaseVersion]) -> set[str]:
    return {version.output_base for version in versions}


def find_orphans(output_root: Path, expected: set[str], alias_name: str) -> list[str]:
    """Output base names in ``output_root`` with no matching source release.

    Sidecar-only bases count too: a release with nothing to package leaves
    a manifest and fingerprint but no archive.
    """

    if not output_root.exists():
        return []
    orphans: set[str] = set()
    for path in output_root.iterdir():
        if path.name == alias_name or not path.is_file():
            continue
        for suffix in (ARCHIVE_SUFFIX, MANIFEST_SUFFIX, FINGERPRINT_SUFFIX):
            if not path.name.endswith(suffix):
                continue
            base = path.name[: -len(suffix)]
            if ARCHIVE_BASE_PATTERN.match(base) and base not in expected:
                orphans.add(base)
            break
    return sorted(orphans)


def orphan_files(output_root: Path, base: str) -> list[Path]:
    """Archive, sidecars and leftover temp or staging files for one base."""

    candidates = [
        output_root / f"{base}{ARCHIVE_SUFFIX}",
        output_root / f"{base}{MANIFEST_SUFFIX}",
        output_root / f"{base}{FINGERPRINT_SUFFIX}",
    ]
    for suffix in (ARCHIVE_SUFFIX, MANIFEST_SUFFIX, FINGERPRINT_SUFFIX):
        candidates.extend(sorted(output_root.glob(f".{base}{suffix}.*")))
    return [path for path in candidates if path.exists()]


def reconcile_outputs(
    output_root: Path,
    expected: set[str],
    alias_name: str,
    *,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> ReconcileResult:
    """Delete every orphan's files; a failed deletion is logged and skipped."""

    effective_logger = logger or LOGGER
    result = ReconcileResult(orphans=find_orphans(output_root, expected, alias_name))
    for base in result.orphans:
        for path in orphan_files(output_root, base):
            if dry_run:
                effective_logger.info("reconcile.would_delete path=%s", path)
                continue
            try:
                path.unlink()
            except OSError as exc:
                result.failed.append(path)
                effective_logger.warning("reconcile.delete_failed path=%s error=%s", path, exc)
                continue
            result.deleted.append(path)
            effective_logger.info("reconcile.deleted path=%s", path)
    return result
