"""Error taxonomy for publish runs."""

from __future__ import annotations

from pathlib import Path


class PublishError(RuntimeError):
    """Base class for failures that halt a publish run."""


class ArchiverNotFoundError(PublishError):
    """The external compression utility could not be located."""

    def __init__(self, searched: list[str]) -> None:
        self.searched = list(searched)
        rendered = ", ".join(self.searched) if self.searched else "<nothing>"
        super().__init__(f"7-Zip executable not found; searched: {rendered}")


class ArchiverToolError(PublishError):
    """The compression utility exited with a non-zero status."""

    def __init__(self, exit_code: int, stdout: str, stderr: str, command: list[str] | None = None) -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.command = list(command or [])
        super().__init__(f"archiver failed with exit code {exit_code}")

    def diagnostics(self) -> str:
        """Render captured tool output for operators."""

        parts = [str(self)]
        if self.command:
            parts.append("command: " + " ".join(self.command))
        parts.append("stdout:\n" + (self.stdout.strip() or "<empty>"))
        parts.append("stderr:\n" + (self.stderr.strip() or "<empty>"))
        return "\n".join(parts)


class ArchiveMissingError(PublishError):
    """The compression utility reported success but wrote no archive."""

    def __init__(self, expected_path: Path) -> None:
        self.expected_path = expected_path
        super().__init__(f"archiver exited 0 but produced no archive at {expected_path}")


class StagingTimeoutError(PublishError):
    """A staged archive never became visible on the destination storage."""

    def __init__(self, staging_path: Path, attempts: int, interval_sec: float) -> None:
        self.staging_path = staging_path
        self.attempts = attempts
        self.interval_sec = interval_sec
        super().__init__(
            f"staged archive {staging_path} not visible after {attempts} checks "
            f"({interval_sec:.2f}s interval)"
        )


class PublishLockError(PublishError):
    """Another publisher holds the output directory lock."""

    def __init__(self, lock_path: Path, holder: str | None = None) -> None:
        self.lock_path = lock_path
        self.holder = holder
        detail = f" (held by {holder})" if holder else ""
        super().__init__(f"output directory is locked by {lock_path}{detail}")
