"""
Platform dispatch for scheduled posts.

Maps platform identifiers to executors and normalizes every outcome,
including crashes and hangs, into a PlatformResult.
"""

import threading
from typing import Dict, List, Optional
from colored_logger import get_colored_logger

from .models import PlatformResult, PostContent

logger = get_colored_logger(__name__)


class PlatformExecutor:
    """
    Delivers content to one platform.

    Implementations check their credentials, perform the platform call and
    map the response to a PlatformResult. Expected failures (missing
    credentials, API and network errors) must be returned as
    ``PlatformResult.failure(...)`` rather than raised.
    """

    platform = ""

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        raise NotImplementedError


class PlatformDispatcher:
    """Registry of platform executors with a uniform execute() contract."""

    def __init__(self, timeout_seconds: Optional[float] = 60.0):
        """
        Initialize the dispatcher.

        Args:
            timeout_seconds: Upper bound for a single platform call; None
                disables the bound
        """
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds
        self._executors: Dict[str, PlatformExecutor] = {}
        self._lock = threading.Lock()

    def register(self, platform: str, executor: PlatformExecutor) -> None:
        platform = platform.strip().lower()
        if not platform:
            raise ValueError("Platform name cannot be empty")
        with self._lock:
            if platform in self._executors:
                logger.warning("Replacing executor for platform '%s'", platform)
            self._executors[platform] = executor
        logger.debug("Registered executor for platform '%s'", platform)

    def unregister(self, platform: str) -> bool:
        with self._lock:
            return self._executors.pop(platform.lower(), None) is not None

    def is_registered(self, platform: str) -> bool:
        with self._lock:
            return platform.lower() in self._executors

    def platforms(self) -> List[str]:
        with self._lock:
            return sorted(self._executors)

    def execute(
        self,
        platform: str,
        content: PostContent,
        credentials: Optional[Dict[str, str]],
    ) -> PlatformResult:
        """Run the executor registered for platform and normalize its outcome."""
        with self._lock:
            executor = self._executors.get(platform.lower())

        if executor is None:
            return PlatformResult.failure(f"Unsupported platform: {platform}")

        try:
            result = self._execute_with_timeout(executor, content, credentials)
        except Exception as e:
            logger.error("Failed to post to %s: %s", platform, e)
            return PlatformResult.failure(str(e) or e.__class__.__name__)

        if not isinstance(result, PlatformResult):
            logger.error(
                "Executor for %s returned %r instead of a PlatformResult",
                platform,
                type(result).__name__,
            )
            return PlatformResult.failure(f"Invalid result from {platform} executor")

        return result

    def _execute_with_timeout(
        self,
        executor: PlatformExecutor,
        content: PostContent,
        credentials: Optional[Dict[str, str]],
    ) -> PlatformResult:
        """Execute a platform call with timeout protection."""
        if self.timeout_seconds is None:
            return executor.execute(content, credentials)

        result_container = [None]
        exception_container = [None]

        def call_runner():
            try:
                result_container[0] = executor.execute(content, credentials)
            except Exception as e:
                exception_container[0] = e

        # Run the call in a separate thread for timeout control
        thread = threading.Thread(target=call_runner, name="PlatformCall", daemon=True)
        thread.start()
        thread.join(timeout=self.timeout_seconds)

        if thread.is_alive():
            # The thread is abandoned; its late result is discarded
            return PlatformResult.failure(
                f"Platform call timed out after {self.timeout_seconds:g} seconds"
            )

        if exception_container[0]:
            raise exception_container[0]

        return result_container[0]
