"""
Tests for the crash recovery pass.
"""

import unittest
from datetime import timedelta

from scheduler.job_store import JobStore
from scheduler.models import JobStatus, create_job
from scheduler.recovery import RecoveryPass
from .test_utils import FIXED_NOW, FakeClock, TempDirTestCase


class TestRecoveryPass(TempDirTestCase):
    def setUp(self):
        super().setUp()
        self.clock = FakeClock()
        self.store = JobStore(self.temp_dir)
        self.recovery = RecoveryPass(self.store, timeout_seconds=600, clock=self.clock)

    def _add(self, status, last_attempt=None):
        job = create_job(
            "post",
            ["telegram"],
            FIXED_NOW - timedelta(hours=2),
            status=status,
            last_attempt=last_attempt,
        )
        self.store.add(job)
        return job

    def test_requeues_only_stale_in_flight_jobs(self):
        stale = self._add(JobStatus.IN_FLIGHT, FIXED_NOW - timedelta(seconds=1200))
        fresh = self._add(JobStatus.IN_FLIGHT, FIXED_NOW - timedelta(seconds=300))
        failed = self._add(JobStatus.FAILED, FIXED_NOW - timedelta(hours=1))
        queued = self._add(JobStatus.QUEUED)

        reclaimed = self.recovery.run()

        self.assertEqual(reclaimed, [stale.id])
        self.assertEqual(self.store.get(stale.id).status, JobStatus.QUEUED)
        self.assertEqual(self.store.get(fresh.id).status, JobStatus.IN_FLIGHT)
        self.assertEqual(self.store.get(failed.id).status, JobStatus.FAILED)
        self.assertEqual(self.store.get(queued.id).status, JobStatus.QUEUED)

    def test_uses_injected_clock(self):
        job = self._add(JobStatus.IN_FLIGHT, FIXED_NOW - timedelta(seconds=300))

        self.assertEqual(self.recovery.run(), [])
        self.clock.advance(seconds=400)
        self.assertEqual(self.recovery.run(), [job.id])

    def test_explicit_now_overrides_clock(self):
        job = self._add(JobStatus.IN_FLIGHT, FIXED_NOW)
        self.assertEqual(self.recovery.run(FIXED_NOW + timedelta(hours=1)), [job.id])

    def test_requeued_job_keeps_attempt_history(self):
        stale = create_job(
            "post",
            ["telegram"],
            FIXED_NOW - timedelta(hours=2),
            status=JobStatus.IN_FLIGHT,
            last_attempt=FIXED_NOW - timedelta(hours=1),
            attempts=1,
        )
        self.store.add(stale)

        self.recovery.run()

        recovered = self.store.get(stale.id)
        self.assertEqual(recovered.attempts, 1)
        self.assertEqual(recovered.last_attempt, FIXED_NOW - timedelta(hours=1))
        self.assertTrue(recovered.is_due(FIXED_NOW))

    def test_empty_store(self):
        self.assertEqual(self.recovery.run(), [])

    def test_rejects_non_positive_timeout(self):
        with self.assertRaises(ValueError):
            RecoveryPass(self.store, timeout_seconds=0)


if __name__ == "__main__":
    unittest.main()
