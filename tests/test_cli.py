"""Tests for the typer CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest
import yaml
from typer.testing import CliRunner

from conftest import write_file
from om_publish.cli import app

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """A project root with settings pointing at a small release tree."""

    for key in ("OM_PUBLISH_SETTINGS_FILE", "OM_PUBLISH_ARCHIVER__EXECUTABLE"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    settings = {
        "paths": {
            "source_root": "./releases",
            "output_root": "./publish",
            "local_temp_root": "./tmp",
            "artifacts_root": "./artifacts",
            "logs_root": "./logs",
        },
        "archiver": {
            "executable": str(tmp_path / "no-such-7z"),
        },
    }
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    (config_dir / "settings.yaml").write_text(yaml.safe_dump(settings), encoding="utf-8")
    write_file(tmp_path / "releases", "OM 15.4.9/docs/c.txt", "old")
    write_file(tmp_path / "releases", "OM 15.4.31/docs/c.txt", "new")
    write_file(tmp_path / "releases", "OM 15.5.9999/docs/c.txt", "nightly")
    write_file(tmp_path / "releases", "OM 12.1.1/docs/c.txt", "ancient")

    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield tmp_path
    for handler in list(root_logger.handlers):
        if handler not in saved_handlers:
            handler.close()
    root_logger.handlers[:] = saved_handlers
    root_logger.setLevel(saved_level)


def _config_args(project: Path) -> list[str]:
    return ["--config-file", str(project / "configs" / "settings.yaml")]


def test_show_config_renders_yaml(project: Path):
    result = runner.invoke(app, ["show-config", *_config_args(project)])

    assert result.exit_code == 0, result.output
    rendered = yaml.safe_load(result.output)
    assert rendered["paths"]["source_root"] == str((project / "releases").resolve())
    assert rendered["archiver"]["compression_level"] == 5
    assert rendered["publish"]["alias_name"] == "OM_latest.zip"


def test_list_versions(project: Path):
    result = runner.invoke(app, ["list-versions", "--show-rejected", *_config_args(project)])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert lines[0].startswith("15.5.9999\tOM 15.5.9999 [unstable]")
    assert lines[1] == "15.4.31\tOM 15.4.31 [latest]"
    assert lines[2] == "15.4.9\tOM 15.4.9"
    assert any(line.startswith("rejected\tOM 12.1.1\tmajor_too_low") for line in lines)


def test_publish_dry_run_needs_no_archiver(project: Path):
    result = runner.invoke(app, ["publish", "--dry-run", *_config_args(project)])

    assert result.exit_code == 0, result.output
    assert "would_rebuild: 3" in result.output
    assert not (project / "publish").exists()
    summaries = list((project / "artifacts" / "run_summaries").glob("*_publish_summary.json"))
    assert len(summaries) == 1


def test_publish_without_archiver_fails_before_writing(project: Path):
    result = runner.invoke(app, ["publish", *_config_args(project)])

    assert result.exit_code == 1
    assert "7-Zip executable not found" in result.output
    assert not (project / "publish").exists()


def test_fingerprint_command(project: Path):
    result = runner.invoke(app, ["fingerprint", "--version", "15.4.31", *_config_args(project)])

    assert result.exit_code == 0, result.output
    assert "files: 1" in result.output
    assert "published: -" in result.output
    assert "changed: true" in result.output


def test_fingerprint_unknown_version(project: Path):
    result = runner.invoke(app, ["fingerprint", "--version", "1.2.3", *_config_args(project)])

    assert result.exit_code != 0
