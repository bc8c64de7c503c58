"""
Telegram Bot API client.

Text posts go through sendMessage; media files are uploaded one by one with
sendPhoto, sendVideo or sendAnimation, captioning the first item.
"""

import os
from typing import Any, Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".mkv")
ANIMATION_EXTENSIONS = (".gif",)


def media_method(path: str):
    """Bot API method and form field used to upload one media file."""
    ext = os.path.splitext(path)[1].lower()
    if ext in VIDEO_EXTENSIONS:
        return "sendVideo", "video"
    if ext in ANIMATION_EXTENSIONS:
        return "sendAnimation", "animation"
    return "sendPhoto", "photo"


class TelegramExecutor(PlatformExecutor):
    """Posts to a chat through the Telegram Bot API."""

    platform = "telegram"
    BASE_URL = "https://api.telegram.org"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("bot_token", "chat_id")):
            return PlatformResult.failure("Telegram credentials not configured")

        bot_token = credentials["bot_token"]
        chat_id = credentials["chat_id"]

        try:
            media = [path for path in content.media if os.path.isfile(path)]
            for path in content.media:
                if path not in media:
                    logger.warning("Media file not found: %s", path)

            if not media:
                data = self._call(
                    bot_token,
                    "sendMessage",
                    json={"chat_id": chat_id, "text": content.text, "parse_mode": "HTML"},
                )
                return PlatformResult.ok(self._message_id(data))

            first_id = None
            for index, path in enumerate(media):
                method, field_name = media_method(path)
                form = {"chat_id": chat_id}
                if index == 0 and content.text:
                    # Caption goes on the first item only
                    form["caption"] = content.text
                    form["parse_mode"] = "HTML"
                with open(path, "rb") as f:
                    data = self._call(
                        bot_token,
                        method,
                        data=form,
                        files={field_name: (os.path.basename(path), f)},
                    )
                if first_id is None:
                    first_id = self._message_id(data)
            return PlatformResult.ok(first_id)

        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Failed to post to Telegram: %s", message)
            return PlatformResult.failure(f"Failed to post to Telegram: {message}")
        except (OSError, ValueError) as e:
            logger.error("Failed to post to Telegram: %s", e)
            return PlatformResult.failure(f"Failed to post to Telegram: {e}")

    def _call(self, bot_token: str, method: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.BASE_URL}/bot{bot_token}/{method}"
        response = requests.post(url, timeout=REQUEST_TIMEOUT, **kwargs)
        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            raise ValueError(f"Telegram API error: {data.get('description', 'unknown')}")
        return data

    @staticmethod
    def _message_id(data: Dict[str, Any]) -> Optional[str]:
        message_id = (data.get("result") or {}).get("message_id")
        return str(message_id) if message_id is not None else None
