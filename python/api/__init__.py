"""
Platform clients for scheduled posts.

Each client is a PlatformExecutor; build_default_dispatcher() registers
all of them under their platform identifiers.
"""

from typing import Optional

from scheduler.dispatcher import PlatformDispatcher

from .bluesky_client import BlueskyExecutor
from .discord_client import DiscordExecutor
from .facebook_client import FacebookExecutor
from .linkedin_client import LinkedInExecutor
from .reddit_client import RedditExecutor
from .telegram_client import TelegramExecutor
from .x_client import XExecutor

DEFAULT_EXECUTORS = (
    TelegramExecutor,
    DiscordExecutor,
    BlueskyExecutor,
    RedditExecutor,
    FacebookExecutor,
    LinkedInExecutor,
    XExecutor,
)


def build_default_dispatcher(
    timeout_seconds: Optional[float] = 60.0,
) -> PlatformDispatcher:
    dispatcher = PlatformDispatcher(timeout_seconds=timeout_seconds)
    for executor_class in DEFAULT_EXECUTORS:
        dispatcher.register(executor_class.platform, executor_class())
    return dispatcher


__all__ = [
    "BlueskyExecutor",
    "DiscordExecutor",
    "FacebookExecutor",
    "LinkedInExecutor",
    "RedditExecutor",
    "TelegramExecutor",
    "XExecutor",
    "build_default_dispatcher",
]
