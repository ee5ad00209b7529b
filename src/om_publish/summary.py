"""Run summary artifacts: a JSON summary and a per-version results table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

import polars as pl

from om_publish.durable import atomic_temp_path, replace_file, write_json_atomically

if TYPE_CHECKING:
    from om_publish.publisher import PublishRunResult, VersionResult

LOGGER = logging.getLogger(__name__)

RUN_SUMMARIES_DIR = "run_summaries"


@dataclass(frozen=True, slots=True)
class RunSummaryPaths:
    summary_path: Path
    results_path: Path


def _version_results_schema() -> dict[str, pl.DataType]:
    """Stable schema for per-version run results."""

    return {
        "name": pl.String,
        "version_text": pl.String,
        "is_unstable": pl.Boolean,
        "outcome": pl.String,
        "file_count": pl.Int64,
        "total_bytes": pl.Int64,
        "fingerprint": pl.String,
        "previous_fingerprint": pl.String,
        "archive_path": pl.String,
        "duration_sec": pl.Float64,
    }


def version_results_frame(results: Sequence[VersionResult]) -> pl.DataFrame:
    """One row per processed version; empty frame with the same schema otherwise."""

    schema = _version_results_schema()
    if not results:
        return pl.DataFrame(schema=schema)
    rows = [
        {
            "name": item.version.name,
            "version_text": item.version.version_text,
            "is_unstable": item.version.is_unstable,
            "outcome": item.outcome.value,
            "file_count": item.file_count,
            "total_bytes": item.total_bytes,
            "fingerprint": item.fingerprint,
            "previous_fingerprint": item.previous_fingerprint,
            "archive_path": str(item.archive_path),
            "duration_sec": float(item.duration_sec),
        }
        for item in results
    ]
    return pl.DataFrame(rows, schema=schema)


def outcome_counts(frame: pl.DataFrame) -> dict[str, int]:
    """Return outcome counts from a version-results frame."""

    if frame.height == 0:
        return {}
    result: dict[str, int] = {}
    for row in frame.group_by("outcome").len(name="count").to_dicts():
        result[str(row["outcome"])] = int(row["count"])
    return dict(sorted(result.items()))


def build_run_summary(result: PublishRunResult, frame: pl.DataFrame) -> dict[str, Any]:
    duration_sec = None
    if result.finished_ts is not None:
        duration_sec = round((result.finished_ts - result.started_ts).total_seconds(), 3)
    alias = result.alias
    reconcile = result.reconcile
    return {
        "run_id": result.run_id,
        "dry_run": result.dry_run,
        "started_ts": result.started_ts.isoformat(),
        "finished_ts": result.finished_ts.isoformat() if result.finished_ts else None,
        "duration_sec": duration_sec,
        "versions_total": frame.height,
        "outcome_counts": outcome_counts(frame),
        "total_bytes": int(frame["total_bytes"].sum()) if frame.height else 0,
        "rejected": [
            {"name": item.name, "reason": item.reason, "detail": item.detail}
            for item in result.rejected
            if item.reason != "not_a_release"
        ],
        "alias": None
        if alias is None
        else {
            "status": alias.status,
            "path": str(alias.alias_path),
            "source_version": alias.source_version,
            "reason": alias.reason,
        },
        "reconcile": None
        if reconcile is None
        else {
            "orphans": list(reconcile.orphans),
            "deleted": [str(path) for path in reconcile.deleted],
            "failed": [str(path) for path in reconcile.failed],
        },
    }


def write_run_summary(
    result: PublishRunResult,
    artifacts_root: Path,
    logger: logging.Logger | None = None,
) -> RunSummaryPaths:
    """Persist the run summary JSON and the version results parquet atomically."""

    effective_logger = logger or LOGGER
    summaries_dir = artifacts_root / RUN_SUMMARIES_DIR
    summary_path = summaries_dir / f"{result.run_id}_publish_summary.json"
    results_path = summaries_dir / f"{result.run_id}_version_results.parquet"

    frame = version_results_frame(result.versions)
    summaries_dir.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(results_path)
    try:
        frame.write_parquet(temp_path)
        replace_file(temp_path, results_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()

    write_json_atomically(build_run_summary(result, frame), summary_path)
    effective_logger.info("summary.written summary=%s results=%s", summary_path, results_path)
    return RunSummaryPaths(summary_path=summary_path, results_path=results_path)
