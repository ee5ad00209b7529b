"""Incremental publisher for OM release folders."""

from om_publish.errors import (
    ArchiveMissingError,
    ArchiverNotFoundError,
    ArchiverToolError,
    PublishError,
    PublishLockError,
    StagingTimeoutError,
)
from om_publish.publisher import (
    PublishConfig,
    Publisher,
    PublishRunResult,
    VersionOutcome,
    VersionResult,
    run_publish,
)

__version__ = "0.1.0"

__all__ = [
    "ArchiveMissingError",
    "ArchiverNotFoundError",
    "ArchiverToolError",
    "PublishError",
    "PublishLockError",
    "StagingTimeoutError",
    "PublishConfig",
    "Publisher",
    "PublishRunResult",
    "VersionOutcome",
    "VersionResult",
    "run_publish",
    "__version__",
]
