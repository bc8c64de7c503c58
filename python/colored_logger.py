import logging
import sys
from typing import Optional

# Custom levels used by the scheduler for job outcomes
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35
FAILURE_LEVEL = 45

logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(NOTICE_LEVEL, "NOTICE")
logging.addLevelName(FAILURE_LEVEL, "FAILURE")

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours whole lines by level when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "SUCCESS": "\033[92m",  # Bright Green
        "WARNING": "\033[33m",  # Yellow
        "NOTICE": "\033[96m",  # Bright Cyan
        "ERROR": "\033[31m",  # Red
        "FAILURE": "\033[91m",  # Bright Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str = None, datefmt: str = None, stream=None):
        super().__init__(fmt, datefmt)
        self._stream = stream or sys.stderr

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        isatty = getattr(self._stream, "isatty", None)
        if isatty and isatty():
            level_color = self.COLORS.get(record.levelname, "")
            return f"{level_color}{message}{self.COLORS['RESET']}"

        return message


def setup_colored_logging(
    level: int = logging.INFO, log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger for the scheduler processes.

    Args:
        level: Logging level (default: logging.INFO)
        log_file: Optional path of a plain-text log file, useful when the
            scheduler runs unattended
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        ColoredFormatter(fmt=DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT)
    )
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(fmt=DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT)
        )
        root_logger.addHandler(file_handler)


class EnhancedLogger:
    """Logger wrapper with methods for the custom levels."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def success(self, msg, *args, **kwargs):
        """Log with SUCCESS level (bright green) - a job or call went through."""
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        """Log with NOTICE level (bright cyan) - state was changed on the user's behalf."""
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    def failure(self, msg, *args, **kwargs):
        """Log with FAILURE level (bright red) - a job ended up failed."""
        self._logger.log(FAILURE_LEVEL, msg, *args, **kwargs)

    # Delegate debug/info/warning/error/exception and friends
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get an enhanced logger instance with custom level methods.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Enhanced logger instance
    """
    return EnhancedLogger(logging.getLogger(name))
