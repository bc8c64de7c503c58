"""
Tests for the scheduled job data model.
"""

import unittest
from datetime import datetime, timedelta, timezone

from scheduler.models import (
    JobStatus,
    PlatformResult,
    PostContent,
    ScheduledJob,
    create_job,
    generate_job_id,
    parse_timestamp,
)
from .test_utils import BaseTestCase, FIXED_NOW


class TestParseTimestamp(BaseTestCase):
    def test_parses_utc_suffix(self):
        parsed = parse_timestamp("2026-03-14T12:00:00Z")
        self.assertEqual(parsed, FIXED_NOW)

    def test_parses_offset_and_normalizes_to_utc(self):
        parsed = parse_timestamp("2026-03-14T14:00:00+02:00")
        self.assertEqual(parsed, FIXED_NOW)
        self.assertEqual(parsed.tzinfo, timezone.utc)

    def test_naive_values_are_local_time(self):
        naive = datetime(2026, 3, 14, 12, 0, 0)
        self.assertEqual(parse_timestamp(naive), naive.astimezone().astimezone(timezone.utc))

    def test_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_timestamp("next tuesday")
        with self.assertRaises(ValueError):
            parse_timestamp(12345)


class TestScheduledJob(BaseTestCase):
    def test_create_job_defaults(self):
        job = create_job("hello", ["telegram"], FIXED_NOW)

        self.assertTrue(job.id.startswith("scheduled-"))
        self.assertEqual(job.status, JobStatus.QUEUED)
        self.assertEqual(job.content, PostContent("hello", []))
        self.assertIsNone(job.last_attempt)
        self.assertIsNone(job.error_message)
        self.assertEqual(job.platform_results, {})
        self.assertEqual(job.attempts, 0)

    def test_generated_ids_are_unique(self):
        ids = {generate_job_id() for _ in range(200)}
        self.assertEqual(len(ids), 200)

    def test_empty_platforms_rejected(self):
        with self.assertRaises(ValueError):
            create_job("hello", [], FIXED_NOW)
        with self.assertRaises(ValueError):
            create_job("hello", ["  "], FIXED_NOW)

    def test_empty_id_rejected(self):
        with self.assertRaises(ValueError):
            ScheduledJob(
                id="", scheduled_time=FIXED_NOW, content=PostContent("t"), platforms=["x"]
            )

    def test_platforms_normalized_and_deduplicated(self):
        job = create_job("hello", ["Telegram", "discord", "telegram "], FIXED_NOW)
        self.assertEqual(job.platforms, ["telegram", "discord"])

    def test_is_due(self):
        job = create_job("hello", ["x"], FIXED_NOW)
        self.assertTrue(job.is_due(FIXED_NOW))
        self.assertTrue(job.is_due(FIXED_NOW + timedelta(seconds=1)))
        self.assertFalse(job.is_due(FIXED_NOW - timedelta(seconds=1)))

    def test_only_queued_jobs_are_due(self):
        job = create_job("hello", ["x"], FIXED_NOW, status=JobStatus.FAILED)
        self.assertFalse(job.is_due(FIXED_NOW + timedelta(hours=1)))

    def test_dict_round_trip_preserves_all_fields(self):
        job = create_job(
            "hello",
            ["telegram", "discord"],
            FIXED_NOW,
            media=["/tmp/a.png"],
            status=JobStatus.FAILED,
            created=FIXED_NOW - timedelta(days=1),
            last_attempt=FIXED_NOW,
            error_message="telegram: boom",
            platform_results={
                "telegram": PlatformResult.failure("boom"),
                "discord": PlatformResult.ok("123"),
            },
            attempts=2,
        )

        restored = ScheduledJob.from_dict(job.to_dict())

        self.assertEqual(restored, job)
        self.assertEqual(restored.to_dict(), job.to_dict())

    def test_from_dict_requires_id(self):
        with self.assertRaises(KeyError):
            ScheduledJob.from_dict({"scheduled_time": "2026-03-14T12:00:00Z"})

    def test_status_accepts_string_values(self):
        job = create_job("hello", ["x"], FIXED_NOW, status="in_flight")
        self.assertEqual(job.status, JobStatus.IN_FLIGHT)


if __name__ == "__main__":
    unittest.main()
