"""
Single-instance guard for the scheduler.

The job store assumes one writer. A lock file holding the owner's PID keeps
a second scheduler from starting against the same storage directory; locks
left behind by dead processes are replaced.
"""

import os
from pathlib import Path
from typing import Optional, Union
import psutil
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)


class InstanceLock:
    """Exclusive PID lock file."""

    FILE_NAME = "scheduler.lock"

    def __init__(self, path: Union[str, Path]):
        path = Path(path).expanduser()
        self.path = path / self.FILE_NAME if path.is_dir() else path
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def owner_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def acquire(self) -> bool:
        """Take the lock. Returns False if a live process already holds it."""
        if self._held:
            return True

        for _ in range(2):
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if not self._clear_stale_lock():
                    return False
                continue

            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(os.getpid()))
            self._held = True
            logger.debug("Acquired scheduler lock %s", self.path)
            return True

        return False

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Error releasing lock file %s: %s", self.path, e)
        self._held = False

    def _clear_stale_lock(self) -> bool:
        pid = self.owner_pid()
        if pid is not None and psutil.pid_exists(pid):
            logger.warning("Scheduler lock %s is held by PID %d", self.path, pid)
            return False

        logger.notice("Removing stale scheduler lock %s (PID %s)", self.path, pid)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        return True

    def __enter__(self) -> "InstanceLock":
        if not self.acquire():
            raise RuntimeError(f"Scheduler lock {self.path} is held by another process")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
