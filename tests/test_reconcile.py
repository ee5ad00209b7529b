"""Tests for orphan cleanup in the output directory."""

from __future__ import annotations

from pathlib import Path

import pytest

from om_publish.reconcile import find_orphans, reconcile_outputs


def _touch(root: Path, *names: str) -> None:
    root.mkdir(parents=True, exist_ok=True)
    for name in names:
        (root / name).write_bytes(b"data")


def test_orphans_and_sidecars_are_removed(tmp_path: Path):
    _touch(
        tmp_path,
        "OM15.4.31.zip",
        "OM15.4.31.manifest.json",
        "OM15.4.31.sha256",
        "OM15.4.9.zip",
        "OM15.4.9.manifest.json",
        "OM15.4.9.sha256",
        ".OM15.4.9.zip.0123abcd.staging",
        ".OM15.4.9.manifest.json.0123abcd.tmp",
        "OM_latest.zip",
    )

    result = reconcile_outputs(tmp_path, {"OM15.4.31"}, "OM_latest.zip")

    assert result.orphans == ["OM15.4.9"]
    assert result.failed == []
    assert len(result.deleted) == 5
    assert sorted(path.name for path in tmp_path.iterdir()) == [
        "OM15.4.31.manifest.json",
        "OM15.4.31.sha256",
        "OM15.4.31.zip",
        "OM_latest.zip",
    ]


def test_unrelated_files_are_left_alone(tmp_path: Path):
    _touch(tmp_path, "readme.zip", "OMtools.zip", "OM15.4.zip", "OM15.4.9-hotfix.zip", "notes.txt")

    assert find_orphans(tmp_path, set(), "OM_latest.zip") == []


def test_sidecar_only_orphans_are_removed(tmp_path: Path):
    _touch(tmp_path, "OM15.0.1.manifest.json", "OM15.0.1.sha256")

    result = reconcile_outputs(tmp_path, set(), "OM_latest.zip")

    assert result.orphans == ["OM15.0.1"]
    assert list(tmp_path.iterdir()) == []


def test_alias_is_never_removed_even_with_custom_name(tmp_path: Path):
    _touch(tmp_path, "OM15.4.9.zip")

    result = reconcile_outputs(tmp_path, set(), "OM15.4.9.zip")

    assert result.orphans == []
    assert (tmp_path / "OM15.4.9.zip").exists()


def test_delete_failure_does_not_stop_sweep(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _touch(tmp_path, "OM15.4.8.zip", "OM15.4.8.sha256", "OM15.4.9.zip", "OM15.4.9.sha256")
    original_unlink = Path.unlink

    def _unlink(self: Path, missing_ok: bool = False) -> None:
        if self.name == "OM15.4.8.zip":
            raise PermissionError("locked by another process")
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", _unlink)

    result = reconcile_outputs(tmp_path, set(), "OM_latest.zip")

    assert result.orphans == ["OM15.4.8", "OM15.4.9"]
    assert [path.name for path in result.failed] == ["OM15.4.8.zip"]
    assert sorted(path.name for path in tmp_path.iterdir()) == ["OM15.4.8.zip"]


def test_dry_run_deletes_nothing(tmp_path: Path):
    _touch(tmp_path, "OM15.4.9.zip")

    result = reconcile_outputs(tmp_path, set(), "OM_latest.zip", dry_run=True)

    assert result.orphans == ["OM15.4.9"]
    assert result.deleted == []
    assert (tmp_path / "OM15.4.9.zip").exists()


def test_missing_output_root(tmp_path: Path):
    assert reconcile_outputs(tmp_path / "missing", set(), "OM_latest.zip").orphans == []
