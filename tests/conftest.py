"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import pytest

from om_publish.errors import ArchiverToolError
from om_publish.publisher import PublishConfig

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def write_file(root: Path, relative: str, content: str = "x", mtime_ns: int | None = None) -> Path:
    """Create ``root/relative`` with ``content`` and an optional fixed mtime."""

    path = root.joinpath(*relative.split("/"))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


@dataclass
class FakeArchiver:
    """Archiver double that zips the list-file entries with ``zipfile``."""

    fail_for: set[str] = field(default_factory=set)
    skip_output: bool = False
    calls: list[dict[str, object]] = field(default_factory=list)

    def run(self, list_file: Path, output_path: Path, working_dir: Path, level: int) -> Path:
        raw = list_file.read_bytes().decode("utf-8")
        entries = [line for line in raw.split("\r\n") if line]
        self.calls.append(
            {
                "list_file": list_file,
                "output_path": output_path,
                "working_dir": working_dir,
                "level": level,
                "entries": entries,
                "raw": raw,
            }
        )
        top = entries[0].split(os.sep)[0] if entries else ""
        if top in self.fail_for:
            raise ArchiverToolError(2, "partial output", "fatal: disk full", ["7z", "a"])
        if self.skip_output:
            return output_path
        with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for entry in entries:
                archive.write(working_dir / entry, arcname=entry.replace(os.sep, "/"))
        return output_path

    def built_versions(self) -> list[str]:
        return [str(call["entries"][0]).split(os.sep)[0] for call in self.calls if call["entries"]]


@pytest.fixture
def fake_archiver() -> FakeArchiver:
    return FakeArchiver()


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "releases"
    root.mkdir()
    return root


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    return tmp_path / "publish"


@pytest.fixture
def publish_config(tmp_path: Path, source_root: Path, output_root: Path) -> PublishConfig:
    return PublishConfig(
        source_root=source_root,
        output_root=output_root,
        local_temp_root=tmp_path / "local-temp",
        visibility_attempts=3,
        visibility_interval_sec=0.0,
    )


@pytest.fixture
def sample_releases(source_root: Path) -> Path:
    """Two stable releases, one unstable release and some non-release folders."""

    write_file(source_root, "OM 15.4.9/docs/readme.txt", "old release")
    write_file(source_root, "OM 15.4.31/docs/c.txt", "current docs")
    write_file(source_root, "OM 15.4.31/om-apps/omofficeaddin/_universal/a.txt", "universal add-in")
    write_file(source_root, "OM 15.4.31/om-apps/omofficeaddin/other/b.txt", "platform add-in")
    write_file(source_root, "OM 15.5.9999/docs/c.txt", "nightly")
    write_file(source_root, "OM 14.9.1/docs/c.txt", "too old")
    write_file(source_root, "Archive/notes.txt", "not a release")
    return source_root
