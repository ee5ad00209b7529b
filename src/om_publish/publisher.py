"""Incremental publish orchestration across all release versions."""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Literal, Sequence
from uuid import uuid4

from om_publish.archiver import ArchiveBuilder, Archiver, SevenZipArchiver, locate_archiver
from om_publish.config import AppSettings
from om_publish.durable import durable_write
from om_publish.errors import PublishError
from om_publish.fingerprint import compute_fingerprint
from om_publish.inclusion import IncludedFile, resolve_included_files
from om_publish.locking import PublishLock
from om_publish.reconcile import ReconcileResult, expected_bases, reconcile_outputs
from om_publish.sidecars import (
    artifact_paths,
    build_manifest,
    read_fingerprint,
    write_fingerprint,
    write_manifest,
)
from om_publish.summary import write_run_summary
from om_publish.utils.paths import ensure_directories
from om_publish.utils.time_utils import now_utc
from om_publish.versions import (
    Rejected,
    ReleaseVersion,
    VersionDiscovery,
    discover_versions,
    select_latest_stable,
)

LOGGER = logging.getLogger(__name__)

# copy2 keeps mtime, but FAT-style shares round it to 2 seconds.
ALIAS_MTIME_TOLERANCE_SEC = 2.0


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Immutable run configuration handed to :class:`Publisher`."""

    source_root: Path
    output_root: Path
    local_temp_root: Path
    compression_level: int = 5
    alias_name: str = "OM_latest.zip"
    min_major: int = 15
    unstable_sentinel: str = "9999"
    visibility_attempts: int = 20
    visibility_interval_sec: float = 0.5
    use_lock: bool = True

    @classmethod
    def from_settings(cls, settings: AppSettings, *, compression_level: int | None = None) -> "PublishConfig":
        return cls(
            source_root=settings.paths.source_root,
            output_root=settings.paths.output_root,
            local_temp_root=settings.paths.local_temp_root,
            compression_level=(
                settings.archiver.compression_level if compression_level is None else compression_level
            ),
            alias_name=settings.publish.alias_name,
            min_major=settings.publish.min_major,
            unstable_sentinel=settings.publish.unstable_sentinel,
            visibility_attempts=settings.staging.visibility_attempts,
            visibility_interval_sec=settings.staging.visibility_interval_sec,
            use_lock=settings.publish.use_lock,
        )


class VersionOutcome(str, Enum):
    SKIPPED_NO_FILES = "skipped_no_files"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    REBUILT = "rebuilt"
    WOULD_REBUILD = "would_rebuild"


@dataclass(frozen=True, slots=True)
class VersionResult:
    """What happened to one version during a run."""

    version: ReleaseVersion
    outcome: VersionOutcome
    file_count: int
    total_bytes: int
    fingerprint: str
    previous_fingerprint: str | None
    archive_path: Path
    duration_sec: float = 0.0


AliasStatus = Literal["updated", "unchanged", "skipped", "would_update"]


@dataclass(frozen=True, slots=True)
class AliasResult:
    status: AliasStatus
    alias_path: Path
    source_version: str | None = None
    reason: str = ""


@dataclass(slots=True)
class PublishRunResult:
    """Outcome of a full publish run."""

    run_id: str
    started_ts: datetime
    finished_ts: datetime | None = None
    dry_run: bool = False
    versions: list[VersionResult] = field(default_factory=list)
    rejected: list[Rejected] = field(default_factory=list)
    alias: AliasResult | None = None
    reconcile: ReconcileResult | None = None
    summary_path: Path | None = None
    results_path: Path | None = None

    def count(self, outcome: VersionOutcome) -> int:
        return sum(1 for item in self.versions if item.outcome == outcome)


class Publisher:
    """Decide skip-vs-rebuild per version, then maintain the alias and sweep orphans."""

    def __init__(
        self,
        config: PublishConfig,
        archiver: Archiver | None,
        *,
        clock: Callable[[], datetime] = now_utc,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._clock = clock
        self._logger = logger or LOGGER
        self._builder: ArchiveBuilder | None = None
        if archiver is not None:
            self._builder = ArchiveBuilder(
                archiver,
                local_temp_root=config.local_temp_root,
                compression_level=config.compression_level,
                visibility_attempts=config.visibility_attempts,
                visibility_interval_sec=config.visibility_interval_sec,
                sleep=sleep,
                logger=self._logger,
            )

    @property
    def alias_path(self) -> Path:
        return self.config.output_root / self.config.alias_name

    def discover(self) -> VersionDiscovery:
        return discover_versions(
            self.config.source_root,
            min_major=self.config.min_major,
            unstable_sentinel=self.config.unstable_sentinel,
            logger=self._logger,
        )

    def _write_sidecars(
        self,
        version: ReleaseVersion,
        files: Sequence[IncludedFile],
        fingerprint: str,
    ) -> None:
        paths = artifact_paths(self.config.output_root, version.output_base)
        write_manifest(build_manifest(version, files, self._clock()), paths.manifest)
        write_fingerprint(fingerprint, paths.fingerprint)

    def publish_version(self, version: ReleaseVersion, *, dry_run: bool = False) -> VersionResult:
        """Run the per-version state machine and return its outcome."""

        started = time.monotonic()
        paths = artifact_paths(self.config.output_root, version.output_base)
        files = resolve_included_files(version.source_path, logger=self._logger)
        fingerprint = compute_fingerprint(files, version.top_folder)
        previous = read_fingerprint(paths.fingerprint, logger=self._logger)
        total_bytes = sum(file.size_bytes for file in files)

        def _result(outcome: VersionOutcome) -> VersionResult:
            return VersionResult(
                version=version,
                outcome=outcome,
                file_count=len(files),
                total_bytes=total_bytes,
                fingerprint=fingerprint,
                previous_fingerprint=previous,
                archive_path=paths.archive,
                duration_sec=round(time.monotonic() - started, 3),
            )

        if not files:
            if not dry_run:
                self._write_sidecars(version, files, fingerprint)
            if paths.archive.exists():
                self._logger.warning(
                    "publish.stale_archive_without_files version=%s archive=%s",
                    version.version_text,
                    paths.archive,
                )
            self._logger.warning("publish.version_no_files version=%s source=%s", version.version_text, version.source_path)
            return _result(VersionOutcome.SKIPPED_NO_FILES)

        if previous == fingerprint and paths.archive.exists():
            self._logger.info(
                "publish.version_unchanged version=%s files=%s fingerprint=%s",
                version.version_text,
                len(files),
                fingerprint[:12],
            )
            return _result(VersionOutcome.SKIPPED_UNCHANGED)

        if previous is None:
            reason = "no_previous_fingerprint"
        elif previous == fingerprint:
            reason = "archive_missing"
        else:
            reason = "fingerprint_changed"
        if dry_run:
            self._logger.info("publish.version_would_rebuild version=%s reason=%s", version.version_text, reason)
            return _result(VersionOutcome.WOULD_REBUILD)

        if self._builder is None:
            raise PublishError("no archiver configured; cannot rebuild archives")
        self._logger.info(
            "publish.version_rebuild version=%s reason=%s files=%s bytes=%s",
            version.version_text,
            reason,
            len(files),
            total_bytes,
        )
        try:
            self._builder.build(version, files, paths.archive)
            self._write_sidecars(version, files, fingerprint)
        except Exception:
            self._logger.error("publish.version_failed version=%s", version.version_text)
            raise
        return _result(VersionOutcome.REBUILT)

    def _alias_is_current(self, archive: Path) -> bool:
        alias = self.alias_path
        if not alias.exists():
            return False
        archive_stat = archive.stat()
        alias_stat = alias.stat()
        return (
            archive_stat.st_size == alias_stat.st_size
            and abs(archive_stat.st_mtime - alias_stat.st_mtime) <= ALIAS_MTIME_TOLERANCE_SEC
        )

    def update_alias(
        self,
        versions: Sequence[ReleaseVersion],
        results: Sequence[VersionResult],
        *,
        dry_run: bool = False,
    ) -> AliasResult:
        """Copy the latest stable archive to the alias name when it needs refreshing."""

        latest = select_latest_stable(versions)
        if latest is None:
            self._logger.warning("publish.alias_skipped reason=no_stable_version")
            return AliasResult(status="skipped", alias_path=self.alias_path, reason="no_stable_version")

        archive = artifact_paths(self.config.output_root, latest.output_base).archive
        if not archive.exists():
            self._logger.warning(
                "publish.alias_skipped reason=archive_missing version=%s archive=%s",
                latest.version_text,
                archive,
            )
            return AliasResult(
                status="skipped",
                alias_path=self.alias_path,
                source_version=latest.version_text,
                reason="archive_missing",
            )

        rebuilt = any(
            item.version == latest and item.outcome == VersionOutcome.REBUILT for item in results
        )
        if rebuilt:
            reason = "archive_rebuilt"
        elif not self.alias_path.exists():
            reason = "alias_missing"
        elif not self._alias_is_current(archive):
            reason = "alias_stale"
        else:
            return AliasResult(status="unchanged", alias_path=self.alias_path, source_version=latest.version_text)

        if dry_run:
            self._logger.info("publish.alias_would_update version=%s reason=%s", latest.version_text, reason)
            return AliasResult(
                status="would_update",
                alias_path=self.alias_path,
                source_version=latest.version_text,
                reason=reason,
            )

        with durable_write(self.alias_path) as temp_path:
            shutil.copy2(archive, temp_path)
        self._logger.info(
            "publish.alias_updated version=%s reason=%s alias=%s",
            latest.version_text,
            reason,
            self.alias_path,
        )
        return AliasResult(
            status="updated",
            alias_path=self.alias_path,
            source_version=latest.version_text,
            reason=reason,
        )

    def _run_unlocked(self, result: PublishRunResult) -> None:
        discovery = self.discover()
        result.rejected = list(discovery.rejected)
        if not discovery.versions:
            self._logger.warning("publish.no_versions source_root=%s", self.config.source_root)

        for index, version in enumerate(discovery.versions, start=1):
            self._logger.info(
                "publish.version_start index=%s/%s version=%s unstable=%s",
                index,
                len(discovery.versions),
                version.version_text,
                version.is_unstable,
            )
            result.versions.append(self.publish_version(version, dry_run=result.dry_run))

        result.alias = self.update_alias(discovery.versions, result.versions, dry_run=result.dry_run)
        # An unreachable source share must not read as "every release was deleted".
        if not self.config.source_root.exists():
            self._logger.warning("publish.reconcile_skipped reason=source_root_missing")
            return
        result.reconcile = reconcile_outputs(
            self.config.output_root,
            expected_bases(discovery.versions),
            self.config.alias_name,
            dry_run=result.dry_run,
            logger=self._logger,
        )

    def run(self, *, dry_run: bool = False) -> PublishRunResult:
        """Publish every discovered version, then refresh the alias and sweep orphans."""

        result = PublishRunResult(run_id=f"publish-run-{uuid4().hex[:12]}", started_ts=self._clock(), dry_run=dry_run)
        self._logger.info(
            "publish.start run_id=%s source_root=%s output_root=%s dry_run=%s",
            result.run_id,
            self.config.source_root,
            self.config.output_root,
            dry_run,
        )
        if dry_run:
            self._run_unlocked(result)
        else:
            ensure_directories([self.config.output_root, self.config.local_temp_root])
            if self.config.use_lock:
                with PublishLock(self.config.output_root, logger=self._logger):
                    self._run_unlocked(result)
            else:
                self._run_unlocked(result)

        result.finished_ts = self._clock()
        self._logger.info(
            "publish.finish run_id=%s versions=%s rebuilt=%s unchanged=%s no_files=%s orphans=%s",
            result.run_id,
            len(result.versions),
            result.count(VersionOutcome.REBUILT),
            result.count(VersionOutcome.SKIPPED_UNCHANGED),
            result.count(VersionOutcome.SKIPPED_NO_FILES),
            len(result.reconcile.orphans) if result.reconcile else 0,
        )
        return result


def build_archiver(settings: AppSettings) -> SevenZipArchiver:
    """Locate 7-Zip from settings; raises when it cannot be found."""

    executable = locate_archiver(
        settings.archiver.executable,
        search_names=settings.archiver.search_names,
        well_known_locations=settings.archiver.well_known_locations,
    )
    return SevenZipArchiver(executable=executable)


def run_publish(
    settings: AppSettings,
    *,
    archiver: Archiver | None = None,
    dry_run: bool = False,
    compression_level: int | None = None,
    logger: logging.Logger | None = None,
) -> PublishRunResult:
    """Entry point used by the CLI: resolve the archiver first, then publish."""

    effective_logger = logger or LOGGER
    config = PublishConfig.from_settings(settings, compression_level=compression_level)
    if archiver is None and not dry_run:
        archiver = build_archiver(settings)
        effective_logger.info("publish.archiver_located executable=%s", archiver.executable)

    publisher = Publisher(config, archiver, logger=effective_logger)
    result = publisher.run(dry_run=dry_run)

    if settings.publish.write_run_summary:
        summary_paths = write_run_summary(result, settings.paths.artifacts_root)
        result.summary_path = summary_paths.summary_path
        result.results_path = summary_paths.results_path
    return result
