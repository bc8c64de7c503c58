"""
LinkedIn client sharing posts through the UGC API.
"""

from typing import Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)


class LinkedInExecutor(PlatformExecutor):
    """Shares a public text post on the authenticated member's profile."""

    platform = "linkedin"
    API_URL = "https://api.linkedin.com/v2"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("token",)):
            return PlatformResult.failure("LinkedIn token not configured")

        headers = {
            "Authorization": f"Bearer {credentials['token']}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

        try:
            me = requests.get(f"{self.API_URL}/me", headers=headers, timeout=REQUEST_TIMEOUT)
            me.raise_for_status()
            author = f"urn:li:person:{me.json()['id']}"

            share = {
                "author": author,
                "lifecycleState": "PUBLISHED",
                "specificContent": {
                    "com.linkedin.ugc.ShareContent": {
                        "shareCommentary": {"text": content.text},
                        "shareMediaCategory": "NONE",
                    }
                },
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            }
            response = requests.post(
                f"{self.API_URL}/ugcPosts",
                headers=headers,
                json=share,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Error posting to LinkedIn: %s", message)
            return PlatformResult.failure(f"Failed to post to LinkedIn: {message}")
        except (KeyError, ValueError) as e:
            return PlatformResult.failure(f"Unexpected LinkedIn response: {e}")

        if content.media:
            logger.info("LinkedIn media upload is not supported; posted text only")

        return PlatformResult.ok(response.headers.get("x-restli-id"))
