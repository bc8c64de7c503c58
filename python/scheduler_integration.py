"""
Wiring of the scheduling components from settings.

Builds the job store, credential resolver, platform dispatcher, history,
recovery pass, lock, scheduler and job service once, and hands them to
callers explicitly.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
from colored_logger import get_colored_logger

from api import build_default_dispatcher
from scheduler import (
    EnvCredentialResolver,
    InstanceLock,
    JobService,
    JobStore,
    PostHistory,
    PostScheduler,
    RecoveryPass,
    TickSummary,
)
from settings import Settings

logger = get_colored_logger(__name__)


class SchedulerIntegration:
    """
    Owns one set of scheduling components built from settings.

    Features:
    - Explicit construction, no global instance
    - Graceful shutdown on interpreter exit
    - One-shot ticks for cron-driven deployments
    """

    def __init__(self, settings: Settings):
        self.settings = settings

        self.store = JobStore(
            settings.storage_path, strict_reads=settings.strict_store_reads
        )
        self.credentials = EnvCredentialResolver(settings.credentials_file)
        self.dispatcher = build_default_dispatcher(settings.platform_timeout_seconds)
        self.history = PostHistory(settings.storage_path, limit=settings.history_limit)
        self.recovery = RecoveryPass(
            self.store, timeout_seconds=settings.recovery_timeout_seconds
        )
        self.instance_lock = (
            InstanceLock(self.store.storage_path) if settings.single_instance else None
        )
        self.scheduler = PostScheduler(
            store=self.store,
            dispatcher=self.dispatcher,
            credentials=self.credentials,
            recovery=self.recovery,
            history=self.history,
            check_interval_seconds=settings.check_interval_seconds,
            recovery_interval_seconds=settings.recovery_interval_seconds,
            instance_lock=self.instance_lock,
        )
        self.jobs = JobService(self.store, known_platforms=self.dispatcher.platforms())
        self._atexit_registered = False

    def startup(self) -> bool:
        """
        Start the background scheduler.

        Returns:
            True if the scheduler is running afterwards
        """
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return True

        if not self.scheduler.start():
            return False

        if not self._atexit_registered:
            atexit.register(self.shutdown)
            self._atexit_registered = True
        return True

    def shutdown(self) -> None:
        """Gracefully shutdown the scheduler."""
        if not self.scheduler.running:
            return
        try:
            self.scheduler.stop(timeout_seconds=30)
        except Exception as e:
            logger.error("Error during scheduler shutdown: %s", e)

    @contextmanager
    def _single_pass(self):
        """Yield True if this process may run a pass against the store."""
        if self.instance_lock is None or self.instance_lock.held:
            yield True
            return

        if not self.instance_lock.acquire():
            yield False
            return

        try:
            yield True
        finally:
            self.instance_lock.release()

    def run_once(self) -> Optional[TickSummary]:
        """
        Recover stuck jobs and run a single tick.

        Meant for deployments that invoke the scheduler from cron instead of
        keeping a process alive. Returns None when another instance is active.
        """
        with self._single_pass() as allowed:
            if not allowed:
                logger.warning("Another scheduler instance is running; skipping this pass")
                return None
            self.recovery.run()
            return self.scheduler.tick()

    def recover(self) -> Optional[List[str]]:
        """
        Run the recovery pass once.

        Returns None when another scheduler instance holds the lock; that
        instance runs its own recovery passes.
        """
        with self._single_pass() as allowed:
            if not allowed:
                logger.warning("Another scheduler instance is running; skipping recovery")
                return None
            return self.recovery.run()

    def get_status(self) -> Dict[str, Any]:
        status = self.scheduler.get_status()
        status["integration"] = {
            "settings_file": self.settings.settings_file,
            "storage_path": self.settings.storage_path,
            "recovery_timeout_seconds": self.settings.recovery_timeout_seconds,
            "platform_timeout_seconds": self.settings.platform_timeout_seconds,
            "history_entries": len(self.history.entries()),
        }
        return status
