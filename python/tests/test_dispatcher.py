"""
Tests for the PlatformDispatcher registry.
"""

import threading
import unittest

from scheduler.dispatcher import PlatformDispatcher
from scheduler.models import PlatformResult, PostContent
from .test_utils import BaseTestCase, RecordingExecutor


class TestRegistry(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.dispatcher = PlatformDispatcher(timeout_seconds=2)

    def test_register_normalizes_names(self):
        self.dispatcher.register(" Telegram ", RecordingExecutor())

        self.assertTrue(self.dispatcher.is_registered("telegram"))
        self.assertTrue(self.dispatcher.is_registered("TELEGRAM"))
        self.assertEqual(self.dispatcher.platforms(), ["telegram"])

    def test_register_replaces_existing_executor(self):
        first = RecordingExecutor(PlatformResult.ok("first"))
        second = RecordingExecutor(PlatformResult.ok("second"))
        self.dispatcher.register("x", first)
        self.dispatcher.register("x", second)

        result = self.dispatcher.execute("x", PostContent("hi"), None)

        self.assertEqual(result.platform_post_id, "second")
        self.assertEqual(first.calls, [])

    def test_register_rejects_empty_name(self):
        with self.assertRaises(ValueError):
            self.dispatcher.register("  ", RecordingExecutor())

    def test_unregister(self):
        self.dispatcher.register("x", RecordingExecutor())
        self.assertTrue(self.dispatcher.unregister("x"))
        self.assertFalse(self.dispatcher.unregister("x"))
        self.assertEqual(self.dispatcher.platforms(), [])

    def test_platforms_sorted(self):
        for name in ("x", "discord", "reddit"):
            self.dispatcher.register(name, RecordingExecutor())
        self.assertEqual(self.dispatcher.platforms(), ["discord", "reddit", "x"])

    def test_rejects_non_positive_timeout(self):
        with self.assertRaises(ValueError):
            PlatformDispatcher(timeout_seconds=0)


class TestExecute(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.dispatcher = PlatformDispatcher(timeout_seconds=2)
        self.content = PostContent("hello", ["a.png"])

    def test_passes_content_and_credentials_through(self):
        executor = RecordingExecutor(PlatformResult.ok("42"))
        self.dispatcher.register("discord", executor)

        result = self.dispatcher.execute(
            "discord", self.content, {"webhook_url": "https://example"}
        )

        self.assertEqual(result, PlatformResult.ok("42"))
        self.assertEqual(executor.calls, [(self.content, {"webhook_url": "https://example"})])

    def test_unknown_platform_is_a_failure(self):
        result = self.dispatcher.execute("myspace", self.content, None)

        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Unsupported platform: myspace")

    def test_exception_becomes_failure(self):
        self.dispatcher.register("x", RecordingExecutor(error=RuntimeError("boom")))

        result = self.dispatcher.execute("x", self.content, None)

        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "boom")

    def test_exception_without_message_uses_class_name(self):
        self.dispatcher.register("x", RecordingExecutor(error=KeyError()))

        result = self.dispatcher.execute("x", self.content, None)

        self.assertEqual(result.error_message, "KeyError")

    def test_invalid_return_value_is_a_failure(self):
        executor = RecordingExecutor()
        executor.result = {"success": True}
        self.dispatcher.register("x", executor)

        result = self.dispatcher.execute("x", self.content, None)

        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Invalid result from x executor")

    def test_hanging_call_times_out(self):
        dispatcher = PlatformDispatcher(timeout_seconds=0.2)
        release = threading.Event()

        class HangingExecutor(RecordingExecutor):
            def execute(self, content, credentials):
                release.wait(5)
                return PlatformResult.ok("late")

        dispatcher.register("slow", HangingExecutor())
        try:
            result = dispatcher.execute("slow", self.content, None)
        finally:
            release.set()

        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Platform call timed out after 0.2 seconds")

    def test_no_timeout_runs_inline(self):
        dispatcher = PlatformDispatcher(timeout_seconds=None)
        seen = []

        class ThreadRecordingExecutor(RecordingExecutor):
            def execute(self, content, credentials):
                seen.append(threading.current_thread())
                return PlatformResult.ok("1")

        dispatcher.register("x", ThreadRecordingExecutor())
        dispatcher.execute("x", self.content, None)

        self.assertIs(seen[0], threading.current_thread())


if __name__ == "__main__":
    unittest.main()
