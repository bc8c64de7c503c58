"""
Archive of completed posts.

Jobs leave the store once delivered; a copy of each is kept here so the
user can still see where a post went and with which platform ids.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from colored_logger import get_colored_logger

from .job_store import write_json_atomic
from .models import ScheduledJob, format_timestamp, utcnow

logger = get_colored_logger(__name__)


class PostHistory:
    """Newest-first list of completed posts, capped at ``limit`` entries."""

    FILE_NAME = "post-history.json"

    def __init__(self, storage_path: Union[str, Path], limit: int = 50):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.path = Path(storage_path).expanduser() / self.FILE_NAME
        self.limit = limit
        self._lock = threading.Lock()

    def entries(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            entries = data.get("posts", [])
            return entries if isinstance(entries, list) else []
        except (json.JSONDecodeError, OSError, AttributeError) as e:
            logger.error("Failed to load post history from %s: %s", self.path, e)
            return []

    def record(
        self, job: ScheduledJob, completed_at: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Prepend a completed job to the history and persist it."""
        entry = {
            "id": job.id,
            "completed_at": format_timestamp(completed_at or utcnow()),
            "scheduled_time": format_timestamp(job.scheduled_time),
            "content": job.content.to_dict(),
            "platforms": list(job.platforms),
            "platform_results": {
                platform: result.to_dict()
                for platform, result in job.platform_results.items()
            },
        }

        with self._lock:
            entries = self.entries()
            entries.insert(0, entry)
            del entries[self.limit :]
            write_json_atomic(self.path, {"posts": entries})

        return entry
