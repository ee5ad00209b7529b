"""Typer CLI entrypoint for om_publish."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
import yaml

from om_publish.config import AppSettings, load_settings
from om_publish.errors import ArchiverToolError, PublishError
from om_publish.fingerprint import compute_fingerprint
from om_publish.inclusion import resolve_included_files
from om_publish.logging_utils import LOG_FILE_NAME, configure_logging
from om_publish.publisher import VersionOutcome, run_publish
from om_publish.sidecars import artifact_paths, read_fingerprint
from om_publish.versions import discover_versions, select_latest_stable

app = typer.Typer(
    add_completion=False,
    help="Publish OM release folders as zip archives with manifest and fingerprint sidecars.",
    no_args_is_help=True,
)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
    verbose: bool = False,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    level = logging.DEBUG if verbose else logging.INFO
    if configure:
        logger = configure_logging(settings.paths.logs_root / LOG_FILE_NAME, level=level)
    else:
        logger = logging.getLogger("om_publish")
    return settings, logger


def _fail(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=1)


@app.command("show-config")
def show_config(config_file: Path | None = CONFIG_FILE_OPTION) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("list-versions")
def list_versions(
    show_rejected: bool = typer.Option(
        False,
        "--show-rejected",
        help="Also list folders that look like releases but were rejected.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """List qualifying release folders, newest first."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    discovery = discover_versions(
        settings.paths.source_root,
        min_major=settings.publish.min_major,
        unstable_sentinel=settings.publish.unstable_sentinel,
        logger=logger,
    )
    latest = select_latest_stable(discovery.versions)
    for version in discovery.versions:
        flags: list[str] = []
        if version.is_unstable:
            flags.append("unstable")
        if version == latest:
            flags.append("latest")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{version.version_text}\t{version.name}{suffix}")
    if not discovery.versions:
        typer.echo("no qualifying versions found")
    if show_rejected:
        for rejection in discovery.rejected:
            if rejection.reason == "not_a_release":
                continue
            typer.echo(f"rejected\t{rejection.name}\t{rejection.reason}\t{rejection.detail}")


@app.command("fingerprint")
def fingerprint(
    version_text: str = typer.Option(..., "--version", help="Version to fingerprint, e.g. 15.4.31."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Compare the current fingerprint of one version with the published one."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    discovery = discover_versions(
        settings.paths.source_root,
        min_major=settings.publish.min_major,
        unstable_sentinel=settings.publish.unstable_sentinel,
        logger=logger,
    )
    matches = [item for item in discovery.versions if item.version_text == version_text.strip()]
    if not matches:
        raise typer.BadParameter(f"version {version_text!r} not found under {settings.paths.source_root}")
    version = matches[0]

    files = resolve_included_files(version.source_path, logger=logger)
    current = compute_fingerprint(files, version.top_folder)
    previous = read_fingerprint(artifact_paths(settings.paths.output_root, version.output_base).fingerprint)
    typer.echo(f"version: {version.version_text}")
    typer.echo(f"files: {len(files)}")
    typer.echo(f"current: {current}")
    typer.echo(f"published: {previous or '-'}")
    typer.echo(f"changed: {str(previous != current).lower()}")


@app.command("publish")
def publish(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Classify and fingerprint versions without touching the output directory.",
    ),
    compression_level: int | None = typer.Option(
        None,
        "--compression-level",
        min=0,
        max=9,
        help="Override the configured zip compression level (0-9).",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Publish every qualifying version, refresh the alias and remove orphans."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True, verbose=verbose)
    try:
        result = run_publish(
            settings,
            dry_run=dry_run,
            compression_level=compression_level,
            logger=logger,
        )
    except ArchiverToolError as exc:
        logger.error("publish.failed error=%s", exc)
        _fail(exc.diagnostics())
    except PublishError as exc:
        logger.error("publish.failed error=%s", exc)
        _fail(str(exc))
    except OSError as exc:
        logger.exception("publish.failed_io")
        _fail(f"filesystem error: {exc}")

    typer.echo(f"run_id: {result.run_id}")
    typer.echo(f"dry_run: {str(result.dry_run).lower()}")
    typer.echo(f"versions_total: {len(result.versions)}")
    for outcome in VersionOutcome:
        typer.echo(f"{outcome.value}: {result.count(outcome)}")
    if result.alias is not None:
        typer.echo(f"alias: {result.alias.status} ({result.alias.source_version or '-'})")
    if result.reconcile is not None:
        typer.echo(f"orphans_removed: {len(result.reconcile.orphans)}")
        typer.echo(f"orphan_delete_failures: {len(result.reconcile.failed)}")
    if result.summary_path is not None:
        typer.echo(f"summary_path: {result.summary_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
