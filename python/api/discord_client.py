"""
Discord webhook client.
"""

from typing import Any, Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)

DISCORD_BRAND_COLOR = 0x5865F2


def build_webhook_payload(content: PostContent) -> Dict[str, Any]:
    """Embed for text-only posts; an image embed when the single media item is a URL."""
    media = content.media
    if not media:
        return {"embeds": [{"description": content.text, "color": DISCORD_BRAND_COLOR}]}

    if len(media) == 1 and media[0].startswith("http"):
        return {
            "embeds": [
                {
                    "image": {"url": media[0]},
                    "description": content.text,
                    "color": DISCORD_BRAND_COLOR,
                }
            ]
        }

    logger.info("Discord webhook posts carry text only; %d media item(s) skipped", len(media))
    return {"content": content.text}


class DiscordExecutor(PlatformExecutor):
    """Posts through a Discord channel webhook."""

    platform = "discord"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("webhook_url",)):
            return PlatformResult.failure("Discord webhook not configured")

        try:
            # wait=true makes Discord return the created message
            response = requests.post(
                credentials["webhook_url"],
                params={"wait": "true"},
                json=build_webhook_payload(content),
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Error posting to Discord: %s", message)
            return PlatformResult.failure(f"Failed to post to Discord: {message}")

        message_id = None
        if response.status_code != 204:
            try:
                message_id = response.json().get("id")
            except ValueError:
                pass
        return PlatformResult.ok(str(message_id) if message_id else None)
