"""Advisory lock that keeps two publishers out of the same output directory."""

from __future__ import annotations

import json
import logging
import os
import socket
from pathlib import Path
from types import TracebackType

from om_publish.errors import PublishLockError
from om_publish.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCK_NAME = ".om_publish.lock"


class PublishLock:
    """Exclusive-create lock file; a second holder fails instead of waiting.

    A crashed run leaves the file behind. Operators remove it by hand after
    checking the recorded pid and host.
    """

    def __init__(self, output_root: Path, name: str = DEFAULT_LOCK_NAME, logger: logging.Logger | None = None) -> None:
        self.path = output_root / name
        self._logger = logger or LOGGER
        self._held = False

    def _read_holder(self) -> str | None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        return f"pid={data.get('pid')} host={data.get('host')} since={data.get('acquired_utc')}"

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise PublishLockError(self.path, self._read_holder()) from exc
        holder = {"pid": os.getpid(), "host": socket.gethostname(), "acquired_utc": now_utc().isoformat()}
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(holder, handle)
        self._held = True
        self._logger.debug("lock.acquired path=%s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            self._logger.warning("lock.already_removed path=%s", self.path)
        self._logger.debug("lock.released path=%s", self.path)

    def __enter__(self) -> "PublishLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
