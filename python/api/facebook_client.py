"""
Facebook Graph API client for page and profile feeds.
"""

from typing import Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)


class FacebookExecutor(PlatformExecutor):
    """Publishes to a page feed, or the user's own feed without a page id."""

    platform = "facebook"
    GRAPH_URL = "https://graph.facebook.com/v18.0"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("token",)):
            return PlatformResult.failure("Facebook token not configured")

        page_id = credentials.get("page_id")
        target = page_id or "me"
        token = credentials.get("page_token") or credentials["token"]

        payload = {"message": content.text, "access_token": token}
        links = [m for m in content.media if m.startswith("http")]
        if links:
            payload["link"] = links[0]

        try:
            response = requests.post(
                f"{self.GRAPH_URL}/{target}/feed", data=payload, timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            post_id = response.json().get("id")
        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Error posting to Facebook: %s", message)
            return PlatformResult.failure(f"Failed to post to Facebook: {message}")
        except ValueError as e:
            return PlatformResult.failure(f"Invalid JSON from Facebook: {e}")

        return PlatformResult.ok(post_id)
