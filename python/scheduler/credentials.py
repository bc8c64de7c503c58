"""
Credential lookup for platform executors.

Resolvers are queried on every execution so that credentials edited while
the scheduler is running take effect on the next attempt.
"""

import json
import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Union
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

Credentials = Dict[str, str]

# Fields each platform family understands. Executors decide which are required.
PLATFORM_CREDENTIAL_FIELDS = {
    "telegram": ("bot_token", "chat_id"),
    "discord": ("webhook_url",),
    "bluesky": ("identifier", "password"),
    "reddit": (
        "access_token",
        "refresh_token",
        "client_id",
        "client_secret",
        "subreddit",
    ),
    "facebook": ("token", "page_token", "page_id"),
    "linkedin": ("token",),
    "x": ("access_token",),
}


def env_var_name(platform: str, field_name: str) -> str:
    """Environment variable holding one credential field, e.g. TELEGRAM_BOT_TOKEN."""
    return f"{platform}_{field_name}".upper()


class CredentialResolver:
    """
    Given a platform, return its current credentials or None.

    Subclasses implement get(); the per-platform methods are conveniences
    for callers that work with one platform family.
    """

    def get(self, platform: str) -> Optional[Credentials]:
        raise NotImplementedError

    def telegram(self) -> Optional[Credentials]:
        return self.get("telegram")

    def discord(self) -> Optional[Credentials]:
        return self.get("discord")

    def bluesky(self) -> Optional[Credentials]:
        return self.get("bluesky")

    def reddit(self) -> Optional[Credentials]:
        return self.get("reddit")

    def facebook(self) -> Optional[Credentials]:
        return self.get("facebook")

    def linkedin(self) -> Optional[Credentials]:
        return self.get("linkedin")

    def x(self) -> Optional[Credentials]:
        return self.get("x")


class StaticCredentialResolver(CredentialResolver):
    """Resolver over a fixed mapping of platform -> credentials."""

    def __init__(self, credentials: Optional[Mapping[str, Mapping[str, str]]] = None):
        self._credentials = {
            platform.lower(): dict(values)
            for platform, values in (credentials or {}).items()
        }

    def set(self, platform: str, credentials: Optional[Mapping[str, str]]) -> None:
        if credentials is None:
            self._credentials.pop(platform.lower(), None)
        else:
            self._credentials[platform.lower()] = dict(credentials)

    def get(self, platform: str) -> Optional[Credentials]:
        values = self._credentials.get(platform.lower())
        if not values:
            return None
        return dict(values)


class EnvCredentialResolver(CredentialResolver):
    """
    Resolver reading environment variables and an optional JSON file.

    Environment variables named <PLATFORM>_<FIELD> take precedence over the
    "credentials" section of the JSON file. Both sources are read on every
    call.
    """

    def __init__(
        self,
        credentials_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.credentials_file = (
            Path(credentials_file).expanduser() if credentials_file else None
        )
        self._environ = environ

    def get(self, platform: str) -> Optional[Credentials]:
        platform = platform.lower()
        environ = self._environ if self._environ is not None else os.environ
        file_values = self._load_file_credentials().get(platform) or {}

        fields = PLATFORM_CREDENTIAL_FIELDS.get(platform, tuple(file_values))
        resolved = {}
        for field_name in fields:
            value = environ.get(env_var_name(platform, field_name))
            if not value:
                value = file_values.get(field_name)
            if value:
                resolved[field_name] = str(value)

        return resolved or None

    def _load_file_credentials(self) -> Dict[str, Dict[str, str]]:
        if not self.credentials_file or not self.credentials_file.is_file():
            return {}

        try:
            with open(self.credentials_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                "Could not read credentials from '%s': %s", self.credentials_file, e
            )
            return {}

        section = data.get("credentials", {}) if isinstance(data, dict) else {}
        if not isinstance(section, dict):
            return {}
        return {
            str(platform).lower(): values
            for platform, values in section.items()
            if isinstance(values, dict)
        }
