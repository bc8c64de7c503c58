import json
import logging
import os
import sys
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_STORAGE_PATH = "~/.post-scheduler"

SCHEDULER_DEFAULTS = {
    "check_interval_seconds": 5,
    "recovery_timeout_seconds": 600,
    "recovery_interval_seconds": 300,
    "platform_timeout_seconds": 60,
    "history_limit": 50,
}


def _load_env_file(env_path: str) -> None:
    """
    Simple .env file parser that doesn't require external dependencies.
    Loads key=value pairs from .env file into os.environ.
    """
    if not os.path.isfile(env_path):
        return

    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith("#"):
                    continue

                if "=" in line:
                    key, value = line.split("=", 1)  # Split on first = only
                    key = key.strip()
                    value = value.strip()

                    # Remove quotes if present
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    # .env file takes precedence over system environment variables
                    if key:
                        os.environ[key] = value

        logger.info(".env file loaded from '%s'", env_path)

    except Exception as e:
        logger.warning("Failed to load .env file: %s", e)


class Settings:
    """
    Loads and validates scheduler settings from a JSON file (by default
    `settings.json`). Platform credentials may live in the file's
    "credentials" section or in <PLATFORM>_<FIELD> environment variables,
    optionally provided through a .env file next to the settings.
    """

    def __init__(
        self, settings_file: str = "settings.json", env_file: Optional[str] = None
    ) -> None:
        """
        Loads settings from the specified file, then populates instance variables.
        Exits the program if the file is missing or invalid.

        :param settings_file: The path to `settings.json`.
        :param env_file: The path to a `.env` file. Defaults to `.env` beside the settings.
        """
        if not os.path.isfile(settings_file):
            logger.critical(
                "settings.json not found at '%s'. Exiting...", settings_file
            )
            sys.exit(1)

        self.raw = self._load_json(settings_file)
        if not isinstance(self.raw, dict):
            logger.critical("settings.json appears to be empty or invalid. Exiting...")
            sys.exit(1)

        self.settings_file: str = os.path.abspath(settings_file)
        _load_env_file(
            env_file or os.path.join(os.path.dirname(self.settings_file), ".env")
        )

        self.storage_path: str = os.path.expanduser(
            self.raw.get("storage_path") or DEFAULT_STORAGE_PATH
        )
        self.log_file: str = self.raw.get("log_file", "") or ""
        self.credentials_file: str = os.path.expanduser(
            self.raw.get("credentials_file") or self.settings_file
        )

        scheduler_settings = self.raw.get("scheduler", {})
        if not isinstance(scheduler_settings, dict):
            logger.warning("'scheduler' section is not an object, using defaults")
            scheduler_settings = {}

        self.check_interval_seconds: float = self._positive_number(
            scheduler_settings, "check_interval_seconds"
        )
        self.recovery_timeout_seconds: float = self._positive_number(
            scheduler_settings, "recovery_timeout_seconds"
        )
        self.recovery_interval_seconds: float = self._positive_number(
            scheduler_settings, "recovery_interval_seconds"
        )
        self.platform_timeout_seconds: float = self._positive_number(
            scheduler_settings, "platform_timeout_seconds"
        )
        self.history_limit: int = int(
            self._positive_number(scheduler_settings, "history_limit")
        )
        self.strict_store_reads: bool = bool(
            scheduler_settings.get("strict_store_reads", False)
        )
        self.single_instance: bool = bool(
            scheduler_settings.get("single_instance", True)
        )

        if self.recovery_timeout_seconds <= self.platform_timeout_seconds:
            logger.warning(
                "recovery_timeout_seconds (%s) should be well above "
                "platform_timeout_seconds (%s); jobs may be retried while still running",
                self.recovery_timeout_seconds,
                self.platform_timeout_seconds,
            )

        logger.info("Settings loaded from '%s'.", settings_file)

    def _positive_number(self, section: Dict[str, Any], key: str) -> float:
        default = SCHEDULER_DEFAULTS[key]
        value = section.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            logger.warning(
                "Invalid value for scheduler.%s: %r. Using default %s.",
                key,
                value,
                default,
            )
            return default
        return value

    def _load_json(self, path: str) -> Any:
        """
        Loads JSON from the given file path.

        :param path: The path to the JSON file.
        :return: The parsed JSON (dictionary or list) if valid, otherwise None.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.error("Error loading JSON file '%s': %s", path, e)
            return None
