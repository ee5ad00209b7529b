"""Tests for the path/size/mtime fingerprint."""

import hashlib
import os
from pathlib import Path

from conftest import write_file
from om_publish.fingerprint import compute_fingerprint, fingerprint_line, fingerprint_lines
from om_publish.inclusion import IncludedFile, resolve_included_files
from om_publish.utils.time_utils import UNIX_EPOCH_TICKS


def _included(relative: str, size: int, mtime_ns: int) -> IncludedFile:
    return IncludedFile(
        absolute_path=Path("/src") / relative,
        relative_path=relative,
        size_bytes=size,
        mtime_ns=mtime_ns,
    )


def test_line_format_uses_ticks():
    item = _included("docs\\c.txt", 12, 1_000_000_000)

    line = fingerprint_line(item, "OM 15.4.31")

    assert line == f"OM 15.4.31\\docs\\c.txt|12|{UNIX_EPOCH_TICKS + 10_000_000}"


def test_digest_matches_sorted_lines():
    files = [_included("b.txt", 1, 0), _included("a.txt", 2, 0)]

    expected_payload = "\n".join(sorted(fingerprint_line(item, "OM 15.4.31") for item in files))

    assert compute_fingerprint(files, "OM 15.4.31") == hashlib.sha256(expected_payload.encode("utf-8")).hexdigest()


def test_digest_is_lowercase_hex_of_fixed_length():
    digest = compute_fingerprint([_included("a.txt", 1, 0)], "OM 15.4.31")

    assert len(digest) == 64
    assert digest == digest.lower()
    int(digest, 16)


def test_input_order_does_not_matter():
    files = [_included("a.txt", 1, 5), _included("b\\c.txt", 2, 6), _included("z.txt", 3, 7)]

    assert compute_fingerprint(files, "OM 15.4.31") == compute_fingerprint(list(reversed(files)), "OM 15.4.31")
    assert fingerprint_lines(files, "T") == fingerprint_lines(reversed(files), "T")


def test_fingerprint_is_stable_across_runs(tmp_path: Path):
    root = tmp_path / "OM 15.4.31"
    write_file(root, "docs/c.txt", "hello", mtime_ns=1_600_000_000_000_000_000)
    write_file(root, "bin/app.dll", "binary", mtime_ns=1_600_000_000_000_000_000)

    first = compute_fingerprint(resolve_included_files(root), root.name)
    second = compute_fingerprint(resolve_included_files(root), root.name)

    assert first == second


def test_size_change_changes_digest(tmp_path: Path):
    root = tmp_path / "OM 15.4.31"
    mtime_ns = 1_600_000_000_000_000_000
    path = write_file(root, "docs/c.txt", "hello", mtime_ns=mtime_ns)
    before = compute_fingerprint(resolve_included_files(root), root.name)

    path.write_text("hello world", encoding="utf-8")
    os.utime(path, ns=(mtime_ns, mtime_ns))

    assert compute_fingerprint(resolve_included_files(root), root.name) != before


def test_mtime_change_changes_digest(tmp_path: Path):
    root = tmp_path / "OM 15.4.31"
    path = write_file(root, "docs/c.txt", "hello", mtime_ns=1_600_000_000_000_000_000)
    before = compute_fingerprint(resolve_included_files(root), root.name)

    os.utime(path, ns=(1_600_000_001_000_000_000, 1_600_000_001_000_000_000))

    assert compute_fingerprint(resolve_included_files(root), root.name) != before


def test_membership_change_changes_digest(tmp_path: Path):
    root = tmp_path / "OM 15.4.31"
    write_file(root, "docs/c.txt", "hello", mtime_ns=1_600_000_000_000_000_000)
    before = compute_fingerprint(resolve_included_files(root), root.name)

    write_file(root, "docs/new.txt", "", mtime_ns=1_600_000_000_000_000_000)

    assert compute_fingerprint(resolve_included_files(root), root.name) != before


def test_content_change_with_same_size_and_mtime_is_invisible(tmp_path: Path):
    root = tmp_path / "OM 15.4.31"
    mtime_ns = 1_600_000_000_000_000_000
    path = write_file(root, "docs/c.txt", "hello", mtime_ns=mtime_ns)
    before = compute_fingerprint(resolve_included_files(root), root.name)

    path.write_text("HELLO", encoding="utf-8")
    os.utime(path, ns=(mtime_ns, mtime_ns))

    assert compute_fingerprint(resolve_included_files(root), root.name) == before


def test_top_folder_rename_changes_digest():
    files = [_included("docs\\c.txt", 5, 0)]

    assert compute_fingerprint(files, "OM 15.4.31") != compute_fingerprint(files, "OM  15.4.31")


def test_empty_set_digest():
    assert compute_fingerprint([], "OM 15.4.31") == hashlib.sha256(b"").hexdigest()
