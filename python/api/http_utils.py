"""
Shared HTTP helpers for the platform clients.
"""

from typing import Dict, Iterable, Optional
import requests

USER_AGENT = "PostScheduler/1.0 (Scheduled Social Posts)"
REQUEST_TIMEOUT = 30


def missing_fields(
    credentials: Optional[Dict[str, str]], required: Iterable[str]
) -> bool:
    if not credentials:
        return True
    return any(not credentials.get(name) for name in required)


def describe_request_error(error: requests.exceptions.RequestException) -> str:
    """
    Best human-readable message for a failed HTTP call.

    Prefers the API's own error text from a JSON body over the generic
    requests message.
    """
    response = getattr(error, "response", None)
    if response is not None:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("description", "message", "error_description", "detail"):
                value = data.get(key)
                if isinstance(value, str) and value:
                    return value
            nested = data.get("error")
            if isinstance(nested, dict) and nested.get("message"):
                return str(nested["message"])
            if isinstance(nested, str) and nested:
                return nested
        status = getattr(response, "status_code", None)
        if status:
            return f"HTTP {status}: {error}"
    return str(error) or error.__class__.__name__
