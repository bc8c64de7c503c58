"""
BlueSky client for the AT Protocol XRPC endpoints.

Every execution opens a fresh session with the account's app password, then
creates the post record.
"""

from typing import Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent, format_timestamp, utcnow
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)


class BlueskyExecutor(PlatformExecutor):
    """Creates an app.bsky.feed.post record with a fresh session."""

    platform = "bluesky"
    BASE_URL = "https://bsky.social/xrpc"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("identifier", "password")):
            return PlatformResult.failure("BlueSky credentials not configured")

        text = content.text
        for item in content.media:
            if item.startswith("http"):
                text += f"\n\n{item}"
            else:
                logger.info("BlueSky blob upload is not supported, skipping %s", item)

        try:
            session = self._create_session(
                credentials["identifier"], credentials["password"]
            )
            response = requests.post(
                f"{self.BASE_URL}/com.atproto.repo.createRecord",
                headers={"Authorization": f"Bearer {session['accessJwt']}"},
                json={
                    "repo": session["did"],
                    "collection": "app.bsky.feed.post",
                    "record": {
                        "$type": "app.bsky.feed.post",
                        "text": text,
                        "createdAt": format_timestamp(utcnow()),
                    },
                },
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return PlatformResult.ok(response.json().get("uri"))

        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Error posting to BlueSky: %s", message)
            return PlatformResult.failure(f"Failed to post to BlueSky: {message}")
        except (KeyError, ValueError) as e:
            logger.error("Unexpected BlueSky response: %s", e)
            return PlatformResult.failure(f"Unexpected BlueSky response: {e}")

    def _create_session(self, identifier: str, password: str) -> Dict[str, str]:
        response = requests.post(
            f"{self.BASE_URL}/com.atproto.server.createSession",
            json={"identifier": identifier, "password": password},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()
