"""
Reddit client submitting self posts through the OAuth API.

An expired access token is refreshed once with the stored refresh token.
"""

from typing import Any, Dict, Optional
import requests
from colored_logger import get_colored_logger

from scheduler.dispatcher import PlatformExecutor
from scheduler.models import PlatformResult, PostContent
from .http_utils import REQUEST_TIMEOUT, USER_AGENT, describe_request_error, missing_fields

logger = get_colored_logger(__name__)

MAX_TITLE_LENGTH = 300


def refresh_access_token(client_id: str, client_secret: str, refresh_token: str) -> str:
    """
    Exchange a refresh token for a new access token.

    Returns an empty string when Reddit does not hand out a token.
    """
    auth = requests.auth.HTTPBasicAuth(client_id, client_secret)
    data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
    headers = {"User-Agent": USER_AGENT}

    try:
        res = requests.post(
            "https://www.reddit.com/api/v1/access_token",
            auth=auth,
            data=data,
            headers=headers,
            timeout=10,
        )
        res.raise_for_status()
        token = res.json().get("access_token", "")
        if not token:
            logger.error("Reddit token refresh returned no access token")
            return ""
        logger.info("Refreshed Reddit access token.")
        return token
    except requests.exceptions.RequestException as e:
        logger.error("Error refreshing Reddit token: %s", describe_request_error(e))
        return ""


def build_title(text: str) -> str:
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    return first_line[:MAX_TITLE_LENGTH] or "Untitled"


class RedditExecutor(PlatformExecutor):
    """Submits a self post to the configured subreddit."""

    platform = "reddit"
    SUBMIT_URL = "https://oauth.reddit.com/api/submit"

    def execute(
        self, content: PostContent, credentials: Optional[Dict[str, str]]
    ) -> PlatformResult:
        if missing_fields(credentials, ("access_token",)):
            return PlatformResult.failure("Reddit credentials not configured")

        subreddit = (credentials.get("subreddit") or "").strip()
        if subreddit.lower().startswith("r/"):
            subreddit = subreddit[2:]
        if not subreddit:
            return PlatformResult.failure("Reddit subreddit not configured")

        body = content.text
        if content.media:
            body += "\n\n" + "\n".join(m for m in content.media if m.startswith("http"))

        payload = {
            "api_type": "json",
            "kind": "self",
            "sr": subreddit,
            "title": build_title(content.text),
            "text": body.strip(),
        }

        try:
            response = self._submit(credentials["access_token"], payload)
            if response.status_code == 401 and self._can_refresh(credentials):
                token = refresh_access_token(
                    credentials["client_id"],
                    credentials["client_secret"],
                    credentials["refresh_token"],
                )
                if token:
                    response = self._submit(token, payload)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            message = describe_request_error(e)
            logger.error("Failed to post to Reddit: %s", message)
            return PlatformResult.failure(f"Failed to post to Reddit: {message}")
        except ValueError as e:
            return PlatformResult.failure(f"Invalid JSON from Reddit: {e}")

        return self._parse_submit_response(data)

    def _submit(self, access_token: str, payload: Dict[str, str]) -> requests.Response:
        headers = {
            "User-Agent": USER_AGENT,
            "Authorization": f"bearer {access_token}",
        }
        logger.debug("Submitting post to r/%s", payload["sr"])
        return requests.post(
            self.SUBMIT_URL, headers=headers, data=payload, timeout=REQUEST_TIMEOUT
        )

    @staticmethod
    def _can_refresh(credentials: Dict[str, str]) -> bool:
        return not missing_fields(
            credentials, ("refresh_token", "client_id", "client_secret")
        )

    @staticmethod
    def _parse_submit_response(data: Any) -> PlatformResult:
        body = data.get("json", {}) if isinstance(data, dict) else {}
        errors = body.get("errors") or []
        if errors:
            # Reddit reports errors as [code, message, field] triples
            messages = [
                str(err[1]) if isinstance(err, list) and len(err) > 1 else str(err)
                for err in errors
            ]
            return PlatformResult.failure("Reddit API error: " + "; ".join(messages))

        name = (body.get("data") or {}).get("name")
        if not name:
            return PlatformResult.failure("Reddit did not return a post id")
        return PlatformResult.ok(name)
