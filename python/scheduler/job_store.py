"""
Durable storage for scheduled jobs.

Handles:
- Full-snapshot persistence with atomic rewrites
- A lock file serializing writers across processes
- Point queries and due-job selection
- Reclaiming jobs stuck in flight after a crash
- Change notifications carrying the full snapshot
"""

import dataclasses
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union
from filelock import FileLock, Timeout
from colored_logger import get_colored_logger

from .errors import InvalidJobStateError, StoreReadError, StoreWriteError
from .models import JobStatus, ScheduledJob, format_timestamp, utcnow

logger = get_colored_logger(__name__)

SnapshotListener = Callable[[List[ScheduledJob]], None]

IMMUTABLE_FIELDS = ("id", "created")


class LoadResult(NamedTuple):
    """Jobs read from the store, plus the error that prevented reading, if any."""

    jobs: List[ScheduledJob]
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def write_json_atomic(path: Union[str, Path], document: Any) -> None:
    """
    Write a JSON document so readers never observe a partial file.

    The document goes to a temporary sibling file which is then renamed over
    the target. On failure the temporary file is removed and the target keeps
    its previous contents.

    Raises:
        StoreWriteError: If the document could not be written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception as e:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise StoreWriteError(f"Failed to write {path}: {e}") from e


class JobStore:
    """
    File-backed repository of scheduled jobs.

    Features:
    - One JSON document per store, sorted by scheduled time
    - Atomic writes through a temporary file and rename
    - Read-modify-write operations serialized across threads and processes
    - Configurable handling of unreadable snapshots
    """

    FILE_NAME = "scheduled-jobs.json"

    def __init__(
        self,
        storage_path: Union[str, Path],
        strict_reads: bool = False,
        file_name: Optional[str] = None,
        lock_timeout_seconds: float = 30,
    ):
        """
        Initialize the job store.

        Args:
            storage_path: Directory holding the snapshot file
            strict_reads: Raise StoreReadError from load_all() when the
                snapshot is unreadable instead of returning an empty list
            file_name: Override the snapshot file name
            lock_timeout_seconds: How long a writer waits for another process
                holding the store lock
        """
        self.storage_path = Path(storage_path).expanduser()
        self.path = self.storage_path / (file_name or self.FILE_NAME)
        self.strict_reads = strict_reads
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout_seconds)
        self._listeners: List[SnapshotListener] = []

        self.storage_path.mkdir(parents=True, exist_ok=True)

        logger.debug(
            "Job store initialized at %s (strict_reads=%s)", self.path, strict_reads
        )

    # ------------------------------------------------------------------ reads

    def load(self) -> LoadResult:
        """Read the snapshot, reporting failures instead of raising them."""
        if not self.path.exists():
            return LoadResult([])

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
            if not isinstance(document, dict):
                raise ValueError("snapshot is not a JSON object")
            records = document.get("scheduled_jobs", [])
            if not isinstance(records, list):
                raise ValueError("'scheduled_jobs' is not a list")
            return LoadResult([ScheduledJob.from_dict(r) for r in records])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load scheduled jobs from %s: %s", self.path, e)
            return LoadResult([], e)

    def load_all(self) -> List[ScheduledJob]:
        """
        Return the full current snapshot.

        A missing store is an empty list. An unreadable store is an empty
        list too, unless the store was created with strict_reads.
        """
        result = self.load()
        if not result.ok and self.strict_reads:
            raise StoreReadError(f"Cannot read {self.path}: {result.error}")
        return result.jobs

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        for job in self.load_all():
            if job.id == job_id:
                return job
        return None

    def due_now(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        """Return queued jobs whose scheduled time has arrived."""
        now = now or utcnow()
        return [job for job in self.load_all() if job.is_due(now)]

    # ----------------------------------------------------------------- writes

    def save_all(self, jobs: List[ScheduledJob]) -> None:
        """
        Persist the full snapshot atomically.

        Raises:
            StoreWriteError: If the snapshot could not be written
        """
        ordered = sorted(jobs, key=lambda job: job.scheduled_time)
        document = {
            "scheduled_jobs": [job.to_dict() for job in ordered],
            "last_updated": format_timestamp(utcnow()),
        }

        with self._exclusive():
            write_json_atomic(self.path, document)
            logger.debug("Saved %d scheduled jobs to %s", len(ordered), self.path)

        self._notify(ordered)

    def add(self, job: ScheduledJob) -> None:
        """
        Add a job and persist the snapshot.

        Raises:
            ValueError: If a job with the same id already exists
        """
        with self._exclusive():
            jobs = self._load_for_update()
            if any(existing.id == job.id for existing in jobs):
                raise ValueError(f"Job with ID '{job.id}' already exists")
            jobs.append(job)
            self.save_all(jobs)

        logger.info(
            "Added scheduled job %s for %s (platforms: %s)",
            job.id,
            format_timestamp(job.scheduled_time),
            ", ".join(job.platforms),
        )

    def update(
        self,
        job_id: str,
        changes: Dict[str, Any],
        expected_status: Optional[JobStatus] = None,
    ) -> Optional[ScheduledJob]:
        """
        Merge fields into the job with the given id and persist.

        Args:
            job_id: Job to change
            changes: Field values to set
            expected_status: Apply the change only if the stored job still has
                this status

        Returns:
            The updated job, or None if no such job exists

        Raises:
            InvalidJobStateError: If the stored job's status is not expected_status
        """
        for name in changes:
            if name in IMMUTABLE_FIELDS:
                raise ValueError(f"Field '{name}' cannot be changed")
            if name not in ScheduledJob.__dataclass_fields__:
                raise ValueError(f"Unknown job field '{name}'")

        with self._exclusive():
            jobs = self._load_for_update()
            for index, job in enumerate(jobs):
                if job.id != job_id:
                    continue
                if expected_status is not None and job.status != expected_status:
                    raise InvalidJobStateError(
                        f"Job {job_id} is {job.status.value}, "
                        f"expected {JobStatus(expected_status).value}"
                    )
                updated = dataclasses.replace(job, **changes)
                jobs[index] = updated
                self.save_all(jobs)
                return updated

        logger.debug("Update skipped, job %s not found", job_id)
        return None

    def mark_in_flight(
        self, job_id: str, now: datetime, attempted_at: Optional[datetime] = None
    ) -> Optional[ScheduledJob]:
        """
        Move a job to in_flight if it is still due at ``now``.

        The check and the transition happen under the store lock, so a job
        edited, deleted or claimed since it was selected is left alone.

        Args:
            job_id: Job to claim
            now: Time the job must be due at
            attempted_at: Recorded as last_attempt (defaults to now)

        Returns:
            The in-flight job, or None if it is gone or no longer due
        """
        with self._exclusive():
            jobs = self._load_for_update()
            for index, job in enumerate(jobs):
                if job.id != job_id:
                    continue
                if not job.is_due(now):
                    logger.debug(
                        "Job %s is no longer due (%s), not claiming it",
                        job_id,
                        job.status.value,
                    )
                    return None
                claimed = dataclasses.replace(
                    job,
                    status=JobStatus.IN_FLIGHT,
                    last_attempt=attempted_at or now,
                    attempts=job.attempts + 1,
                )
                jobs[index] = claimed
                self.save_all(jobs)
                return claimed

        return None

    def remove(self, job_id: str) -> bool:
        """Delete a job. Returns True if it existed."""
        with self._exclusive():
            jobs = self._load_for_update()
            remaining = [job for job in jobs if job.id != job_id]
            if len(remaining) == len(jobs):
                return False
            self.save_all(remaining)

        logger.info("Removed scheduled job %s", job_id)
        return True

    def recover_stuck(
        self, now: Optional[datetime] = None, timeout: timedelta = timedelta(minutes=10)
    ) -> List[str]:
        """
        Reset in-flight jobs whose last attempt is older than the timeout.

        Jobs in flight without a recorded attempt are reclaimed as well.

        Returns:
            Ids of the jobs put back in the queue
        """
        now = now or utcnow()
        cutoff = now - timeout
        reclaimed = []

        with self._exclusive():
            jobs = self._load_for_update()
            for index, job in enumerate(jobs):
                if job.status != JobStatus.IN_FLIGHT:
                    continue
                if job.last_attempt is None or job.last_attempt < cutoff:
                    jobs[index] = dataclasses.replace(job, status=JobStatus.QUEUED)
                    reclaimed.append(job.id)

            if reclaimed:
                self.save_all(jobs)

        return reclaimed

    # ---------------------------------------------------------- notifications

    def subscribe(self, listener: SnapshotListener) -> None:
        """Call listener with the full snapshot after every persisted change."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, jobs: List[ScheduledJob]) -> None:
        for listener in list(self._listeners):
            try:
                listener(list(jobs))
            except Exception as e:
                logger.error("Snapshot listener %r failed: %s", listener, e)

    @contextmanager
    def _exclusive(self):
        """Hold the in-process lock and the cross-process store lock."""
        with self._lock:
            try:
                self._file_lock.acquire()
            except Timeout as e:
                raise StoreWriteError(
                    f"Timed out waiting for store lock {self.lock_path}"
                ) from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _load_for_update(self) -> List[ScheduledJob]:
        # Never rewrite a snapshot we could not read
        result = self.load()
        if not result.ok:
            raise StoreReadError(
                f"Refusing to modify unreadable store {self.path}: {result.error}"
            )
        return result.jobs
