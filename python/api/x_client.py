"""
X (Twitter) client for the v2 tweets endpoint.

Authenticates with an OAuth 2.0 user-context access token (scopes tweet.write
and users.read). OAuth 1.0a consumer keys with an access token secret are not
supported; generate an OAuth 2.0 token for the account instead.
"""

from typing import Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)

MAX_TWEET_LENGTH = 280


class XExecutor(PlatformExecutor):
    """Creates a post with an OAuth 2.0 user-context bearer token."""

    platform = "x"
    TWEETS_URL = "https://api.twitter.com/2/tweets"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("access_token",)):
            return PlatformResult.failure("X/Twitter credentials not configured")

        if len(content.text) > MAX_TWEET_LENGTH:
            logger.warning(
                "Post is %d characters; X may reject it", len(content.text)
            )

        try:
            response = requests.post(
                self.TWEETS_URL,
                headers={"Authorization": f"Bearer {credentials['access_token']}"},
                json={"text": content.text},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            tweet_id = response.json()["data"]["id"]
        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Error posting to X: %s", message)
            return PlatformResult.failure(f"Failed to post to X: {message}")
        except (KeyError, TypeError, ValueError) as e:
            return PlatformResult.failure(f"Unexpected X response: {e}")

        return PlatformResult.ok(str(tweet_id))
