"""
Polling scheduler for queued posts.

Runs a background thread that wakes up at a fixed interval, picks up due
jobs and delivers each of them to its platforms, one job and one platform
at a time.
"""

import dataclasses
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import psutil
from colored_logger import get_colored_logger

from .credentials import CredentialResolver
from .dispatcher import PlatformDispatcher
from .errors import InvalidJobStateError, SchedulerError
from .history import PostHistory
from .instance_lock import InstanceLock
from .job_store import JobStore
from .models import (
    JobStatus,
    PlatformResult,
    ScheduledJob,
    format_timestamp,
    utcnow,
)
from .recovery import RecoveryPass

logger = get_colored_logger(__name__)


@dataclass
class JobOutcome:
    """Final state of one job processed during a tick."""

    job: ScheduledJob
    status: JobStatus

    @property
    def job_id(self) -> str:
        return self.job.id


@dataclass
class TickSummary:
    """Result of one polling cycle."""

    started_at: datetime
    outcomes: List[JobOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def completed(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.status == JobStatus.COMPLETED]

    @property
    def failed(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.status == JobStatus.FAILED]


def summarize_errors(results: Dict[str, PlatformResult]) -> str:
    """Join per-platform error messages into one human-readable line."""
    messages = [
        f"{platform}: {result.error_message or 'unknown error'}"
        for platform, result in results.items()
        if not result.success
    ]
    return "; ".join(messages)


class PostScheduler:
    """
    Fixed-interval scheduler for queued posts.

    Features:
    - Background polling thread with graceful shutdown
    - Sequential delivery per job and per platform
    - Success-if-any aggregation across platforms
    - Crash recovery at start-up and on a slower cadence
    - Optional single-instance lock
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: PlatformDispatcher,
        credentials: CredentialResolver,
        recovery: Optional[RecoveryPass] = None,
        history: Optional[PostHistory] = None,
        check_interval_seconds: float = 5,
        recovery_interval_seconds: float = 300,
        instance_lock: Optional[InstanceLock] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Job store holding the queue
            dispatcher: Registry of platform executors
            credentials: Source of per-platform credentials
            recovery: Recovery pass run at start and periodically
            history: Archive receiving completed jobs
            check_interval_seconds: How often to look for due jobs
            recovery_interval_seconds: How often to rerun the recovery pass
            instance_lock: Lock preventing a second scheduler on the same store
            clock: Time source, replaceable in tests
        """
        self.store = store
        self.dispatcher = dispatcher
        self.credentials = credentials
        self.recovery = recovery
        self.history = history
        self.check_interval_seconds = max(0.1, float(check_interval_seconds))
        self.recovery_interval_seconds = max(
            self.check_interval_seconds, float(recovery_interval_seconds)
        )
        self.instance_lock = instance_lock
        self.clock = clock

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._shutdown_event = threading.Event()
        self._scheduler_thread: Optional[threading.Thread] = None
        self._running = False
        self._last_tick: Optional[datetime] = None
        self._last_recovery: Optional[float] = None

        logger.info(
            "Post scheduler initialized with %gs check interval, %gs recovery interval",
            self.check_interval_seconds,
            self.recovery_interval_seconds,
        )

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Start the background scheduler thread.

        Returns:
            False if another scheduler instance holds the lock
        """
        with self._lock:
            if self._running:
                logger.warning("Scheduler is already running")
                return True

            if self.instance_lock and not self.instance_lock.acquire():
                logger.warning(
                    "Another scheduler instance is already running. Skipping start."
                )
                return False

            self._run_recovery()

            self._shutdown_event.clear()
            self._running = True
            self._scheduler_thread = threading.Thread(
                target=self._scheduler_loop, name="PostScheduler", daemon=True
            )
            self._scheduler_thread.start()

        logger.info("Post scheduler started")
        return True

    def stop(self, timeout_seconds: float = 30) -> None:
        """
        Stop the scheduler.

        Platform calls already under way are not interrupted; their job stays
        in flight until a later recovery pass reclaims it.
        """
        with self._lock:
            if not self._running:
                logger.info("Scheduler is not running")
                return

            logger.info("Stopping post scheduler...")
            self._running = False
            self._shutdown_event.set()

        if self._scheduler_thread and self._scheduler_thread.is_alive():
            self._scheduler_thread.join(timeout=timeout_seconds)
            if self._scheduler_thread.is_alive():
                logger.warning(
                    "Scheduler thread did not stop within %ss", timeout_seconds
                )

        if self.instance_lock:
            self.instance_lock.release()

        logger.info("Post scheduler stopped")

    def _scheduler_loop(self) -> None:
        """Main scheduler loop that runs in background thread."""
        logger.info("Scheduler loop started")

        while not self._shutdown_event.is_set():
            try:
                self.tick()

                if self._recovery_due():
                    self._run_recovery()
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)

            # Wait for next check or shutdown signal
            self._shutdown_event.wait(timeout=self.check_interval_seconds)

        logger.info("Scheduler loop ended")

    def _recovery_due(self) -> bool:
        if self.recovery is None:
            return False
        if self._last_recovery is None:
            return True
        return time.monotonic() - self._last_recovery >= self.recovery_interval_seconds

    def _run_recovery(self) -> List[str]:
        if self.recovery is None:
            return []
        self._last_recovery = time.monotonic()
        try:
            return self.recovery.run(self.clock())
        except SchedulerError as e:
            logger.error("Recovery pass failed: %s", e)
            return []

    def tick(self, now: Optional[datetime] = None) -> TickSummary:
        """
        Run one polling cycle: deliver every job that is due.

        A tick requested while another one is still running is skipped.
        """
        now = now or self.clock()
        summary = TickSummary(started_at=now)

        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous tick still running, skipping")
            summary.skipped = True
            return summary

        try:
            self._last_tick = now
            due_jobs = self.store.due_now(now)
            if not due_jobs:
                return summary

            logger.info("Found %d posts due for execution", len(due_jobs))

            for job in due_jobs:
                try:
                    outcome = self.run_job(job, now)
                except SchedulerError as e:
                    # Left in flight; the recovery pass will requeue it
                    logger.error("Storage error while processing job %s: %s", job.id, e)
                    continue
                if outcome is not None:
                    summary.outcomes.append(outcome)
        finally:
            self._tick_lock.release()

        return summary

    def run_job(
        self, job: ScheduledJob, now: Optional[datetime] = None
    ) -> Optional[JobOutcome]:
        """
        Deliver one job to all of its platforms and record the outcome.

        Returns:
            The outcome, or None if the job is gone or no longer due

        Raises:
            SchedulerError: If the store could not be read or written
        """
        now = now or self.clock()

        in_flight = self.store.mark_in_flight(job.id, now, attempted_at=self.clock())
        if in_flight is None:
            logger.info("Job %s is no longer due, skipping it", job.id)
            return None

        logger.info(
            "Executing scheduled post %s (attempt %d) on %s",
            in_flight.id,
            in_flight.attempts,
            ", ".join(in_flight.platforms),
        )

        results = dict(in_flight.platform_results)
        attempt_results: Dict[str, PlatformResult] = {}
        for platform in in_flight.platforms:
            result = self._execute_platform(platform, in_flight)
            results[platform] = result
            attempt_results[platform] = result

        if any(result.success for result in attempt_results.values()):
            completed = dataclasses.replace(
                in_flight,
                status=JobStatus.COMPLETED,
                platform_results=results,
                error_message=None,
            )
            self._archive(completed)
            self.store.remove(completed.id)
            logger.success(
                "Scheduled post %s completed (%d/%d platforms succeeded)",
                completed.id,
                sum(1 for r in attempt_results.values() if r.success),
                len(attempt_results),
            )
            return JobOutcome(completed, JobStatus.COMPLETED)

        error_message = summarize_errors(attempt_results)
        failed = dataclasses.replace(
            in_flight,
            status=JobStatus.FAILED,
            error_message=error_message,
            platform_results=results,
        )
        try:
            stored = self.store.update(
                in_flight.id,
                {
                    "status": JobStatus.FAILED,
                    "error_message": error_message,
                    "platform_results": results,
                },
                expected_status=JobStatus.IN_FLIGHT,
            )
        except InvalidJobStateError as e:
            # Requeued by recovery while its platforms were being called
            logger.warning("Not recording failure of job %s: %s", in_flight.id, e)
            stored = None
        if stored is not None:
            failed = stored
        logger.failure("Scheduled post %s failed: %s", failed.id, error_message)
        return JobOutcome(failed, JobStatus.FAILED)

    def _execute_platform(self, platform: str, job: ScheduledJob) -> PlatformResult:
        try:
            credentials = self.credentials.get(platform)
        except Exception as e:
            logger.error("Credential lookup for %s failed: %s", platform, e)
            return PlatformResult.failure(f"Credential lookup failed: {e}")

        result = self.dispatcher.execute(platform, job.content, credentials)
        if result.success:
            logger.info(
                "Job %s posted to %s (id: %s)",
                job.id,
                platform,
                result.platform_post_id or "n/a",
            )
        else:
            logger.warning(
                "Job %s failed on %s: %s", job.id, platform, result.error_message
            )
        return result

    def _archive(self, job: ScheduledJob) -> None:
        if self.history is None:
            return
        try:
            self.history.record(job, self.clock())
        except SchedulerError as e:
            # Delivery already happened; losing the archive copy is not fatal
            logger.error("Could not archive job %s: %s", job.id, e)

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status information."""
        jobs = self.store.load()
        counts = {status.value: 0 for status in JobStatus}
        for job in jobs.jobs:
            counts[job.status.value] += 1

        return {
            "running": self._running,
            "check_interval_seconds": self.check_interval_seconds,
            "recovery_interval_seconds": self.recovery_interval_seconds,
            "store_path": str(self.store.path),
            "store_readable": jobs.ok,
            "total_jobs": len(jobs.jobs),
            "jobs_by_status": counts,
            "platforms": self.dispatcher.platforms(),
            "last_tick": format_timestamp(self._last_tick),
            "resource_usage": {
                "memory_mb": self._get_memory_usage(),
                "active_threads": threading.active_count(),
            },
        }

    def _get_memory_usage(self) -> int:
        """Get current memory usage in MB."""
        try:
            process = psutil.Process()
            return int(process.memory_info().rss / 1024 / 1024)
        except psutil.Error:
            return 0
