"""
Crash recovery for jobs abandoned mid-execution.

A job stays in flight if the process dies between marking it and writing
its outcome. Once its last attempt is older than the timeout it is put back
in the queue, giving at-least-once delivery: a post that went out just
before the crash can be sent again.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional
from colored_logger import get_colored_logger

from .job_store import JobStore
from .models import utcnow

logger = get_colored_logger(__name__)


class RecoveryPass:
    """Reclaims in-flight jobs whose last attempt has gone stale."""

    def __init__(
        self,
        store: JobStore,
        timeout_seconds: float = 600,
        clock: Callable[[], datetime] = utcnow,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.store = store
        self.timeout = timedelta(seconds=timeout_seconds)
        self.clock = clock

    def run(self, now: Optional[datetime] = None) -> List[str]:
        """Reset stale in-flight jobs to queued and return their ids."""
        now = now or self.clock()
        reclaimed = self.store.recover_stuck(now, self.timeout)

        for job_id in reclaimed:
            logger.notice(
                "Job %s was in flight for more than %s, returned to queue",
                job_id,
                self.timeout,
            )
        if not reclaimed:
            logger.debug("Recovery pass found no stuck jobs")

        return reclaimed
