"""Build release archives with the external 7-Zip utility.

The tool writes to a local temp file first; the finished archive is then
moved onto the destination storage under a staging name, polled until it is
visible, and renamed over the final archive. Network shares are slow and
can expose half-written files, so the tool never writes to them directly.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Sequence
from uuid import uuid4

from om_publish.durable import atomic_temp_path, replace_file
from om_publish.errors import (
    ArchiveMissingError,
    ArchiverNotFoundError,
    ArchiverToolError,
    StagingTimeoutError,
)
from om_publish.inclusion import IncludedFile, split_relative
from om_publish.versions import ReleaseVersion

LOGGER = logging.getLogger(__name__)

DEFAULT_SEARCH_NAMES: tuple[str, ...] = ("7z", "7za", "7zz")
DEFAULT_COMPRESSION_LEVEL = 5
LIST_FILE_ENCODING = "utf-8"
LIST_FILE_NEWLINE = "\r\n"
STAGING_SUFFIX = ".staging"


class Archiver(Protocol):
    """Capability that turns a list file into a zip archive."""

    def run(self, list_file: Path, output_path: Path, working_dir: Path, level: int) -> Path:
        """Create ``output_path`` from the entries in ``list_file``; return the archive path."""
        ...


def locate_archiver(
    explicit: Path | None = None,
    *,
    search_names: Sequence[str] = DEFAULT_SEARCH_NAMES,
    well_known_locations: Sequence[Path] = (),
) -> Path:
    """Find the 7-Zip executable or raise :class:`ArchiverNotFoundError`."""

    searched: list[str] = []
    if explicit is not None:
        searched.append(str(explicit))
        if explicit.is_file():
            return explicit
        raise ArchiverNotFoundError(searched)

    for name in search_names:
        searched.append(f"PATH:{name}")
        found = shutil.which(name)
        if found:
            return Path(found)
    for candidate in well_known_locations:
        searched.append(str(candidate))
        if candidate.is_file():
            return candidate
    raise ArchiverNotFoundError(searched)


@dataclass(frozen=True, slots=True)
class SevenZipArchiver:
    """Drive ``7z a -tzip`` out of process with captured output streams."""

    executable: Path

    def command(self, list_file: Path, output_path: Path, level: int) -> list[str]:
        return [
            str(self.executable),
            "a",
            "-tzip",
            f"-mx={level}",
            "-y",
            "-bd",
            "-bso1",
            "-bsp0",
            "-scsUTF-8",
            str(output_path),
            f"@{list_file}",
        ]

    def run(self, list_file: Path, output_path: Path, working_dir: Path, level: int) -> Path:
        command = self.command(list_file, output_path, level)
        LOGGER.debug("archiver.invoke cwd=%s command=%s", working_dir, command)
        completed = subprocess.run(
            command,
            cwd=working_dir,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        if completed.returncode != 0:
            raise ArchiverToolError(completed.returncode, completed.stdout, completed.stderr, command)
        if not output_path.exists():
            raise ArchiveMissingError(output_path)
        return output_path


def list_file_entry(version: ReleaseVersion, file: IncludedFile) -> str:
    """Path of ``file`` relative to the release parent, using the native separator."""

    return os.sep.join((version.top_folder, *split_relative(file.relative_path)))


def write_list_file(version: ReleaseVersion, files: Sequence[IncludedFile], list_path: Path) -> Path:
    """Write the archiver response file: one CRLF-terminated entry per file."""

    list_path.parent.mkdir(parents=True, exist_ok=True)
    with list_path.open("w", encoding=LIST_FILE_ENCODING, newline="") as handle:
        for file in files:
            handle.write(list_file_entry(version, file) + LIST_FILE_NEWLINE)
    return list_path


def wait_until_visible(
    path: Path,
    *,
    attempts: int,
    interval_sec: float,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll for ``path`` up to ``attempts`` times before giving up."""

    for attempt in range(1, attempts + 1):
        if path.exists():
            if attempt > 1:
                LOGGER.info("archiver.staging_visible path=%s attempt=%s", path, attempt)
            return
        if attempt < attempts:
            sleep(interval_sec)
    raise StagingTimeoutError(path, attempts, interval_sec)


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()


class ArchiveBuilder:
    """Produce one release archive through the local-temp, staging, rename protocol."""

    def __init__(
        self,
        archiver: Archiver,
        *,
        local_temp_root: Path,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
        visibility_attempts: int = 20,
        visibility_interval_sec: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        if not 0 <= compression_level <= 9:
            raise ValueError(f"compression_level must be within 0..9, got {compression_level}")
        self.archiver = archiver
        self.local_temp_root = local_temp_root
        self.compression_level = compression_level
        self.visibility_attempts = visibility_attempts
        self.visibility_interval_sec = visibility_interval_sec
        self._sleep = sleep
        self._logger = logger or LOGGER

    def build(self, version: ReleaseVersion, files: Sequence[IncludedFile], target: Path) -> Path:
        """Archive ``files`` under ``version.top_folder`` and publish it at ``target``."""

        self.local_temp_root.mkdir(parents=True, exist_ok=True)
        token = uuid4().hex
        list_path = self.local_temp_root / f"{version.output_base}.{token}.lst"
        local_archive = self.local_temp_root / f"{version.output_base}.{token}.zip"
        staging_path = atomic_temp_path(target, suffix=STAGING_SUFFIX)
        started = time.monotonic()
        try:
            write_list_file(version, files, list_path)
            self._logger.info(
                "archiver.build_start version=%s files=%s level=%s",
                version.version_text,
                len(files),
                self.compression_level,
            )
            self.archiver.run(list_path, local_archive, version.source_path.parent, self.compression_level)
            if not local_archive.exists():
                raise ArchiveMissingError(local_archive)

            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(local_archive), str(staging_path))
            wait_until_visible(
                staging_path,
                attempts=self.visibility_attempts,
                interval_sec=self.visibility_interval_sec,
                sleep=self._sleep,
            )
            replace_file(staging_path, target)
        finally:
            _discard(list_path)
            _discard(local_archive)
            _discard(staging_path)

        self._logger.info(
            "archiver.build_done version=%s archive=%s bytes=%s elapsed_sec=%.2f",
            version.version_text,
            target,
            target.stat().st_size,
            time.monotonic() - started,
        )
        return target
