"""
Data model for scheduled posts.

A ScheduledJob is one piece of content queued for delivery to one or more
platforms, together with its execution state.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class JobStatus(str, Enum):
    """Lifecycle states of a scheduled job."""

    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are interpreted in the host's local time zone, which is how
    user-entered schedule times are meant.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def generate_job_id() -> str:
    return f"scheduled-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class PostContent:
    """Opaque payload handed unmodified to platform executors."""

    text: str
    media: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "media": list(self.media)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostContent":
        return cls(text=data.get("text", ""), media=list(data.get("media") or []))


@dataclass
class PlatformResult:
    """Normalized outcome of attempting delivery to one platform."""

    success: bool
    platform_post_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, platform_post_id: Optional[str] = None) -> "PlatformResult":
        return cls(success=True, platform_post_id=platform_post_id)

    @classmethod
    def failure(cls, error_message: str) -> "PlatformResult":
        return cls(success=False, error_message=error_message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "platform_post_id": self.platform_post_id,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformResult":
        return cls(
            success=bool(data.get("success", False)),
            platform_post_id=data.get("platform_post_id"),
            error_message=data.get("error_message"),
        )


@dataclass
class ScheduledJob:
    """A scheduled unit of content plus its target platforms and execution state."""

    id: str
    scheduled_time: datetime
    content: PostContent
    platforms: List[str]
    status: JobStatus = JobStatus.QUEUED
    created: datetime = field(default_factory=utcnow)
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    platform_results: Dict[str, PlatformResult] = field(default_factory=dict)
    attempts: int = 0

    def __post_init__(self):
        """Validate and normalize job fields."""
        if not self.id:
            raise ValueError("Job id cannot be empty")

        platforms = []
        for platform in self.platforms or []:
            name = str(platform).strip().lower()
            if name and name not in platforms:
                platforms.append(name)
        if not platforms:
            raise ValueError("Job must target at least one platform")
        self.platforms = platforms

        self.status = JobStatus(self.status)
        self.scheduled_time = parse_timestamp(self.scheduled_time)
        self.created = parse_timestamp(self.created)
        if self.last_attempt is not None:
            self.last_attempt = parse_timestamp(self.last_attempt)
        if self.attempts < 0:
            raise ValueError("attempts cannot be negative")

    def is_due(self, now: datetime) -> bool:
        return self.status == JobStatus.QUEUED and self.scheduled_time <= now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scheduled_time": format_timestamp(self.scheduled_time),
            "content": self.content.to_dict(),
            "platforms": list(self.platforms),
            "status": self.status.value,
            "created": format_timestamp(self.created),
            "last_attempt": format_timestamp(self.last_attempt),
            "error_message": self.error_message,
            "platform_results": {
                platform: result.to_dict()
                for platform, result in self.platform_results.items()
            },
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledJob":
        """
        Build a job from its stored mapping.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field holds an invalid value
        """
        results = data.get("platform_results") or {}
        return cls(
            id=data["id"],
            scheduled_time=data["scheduled_time"],
            content=PostContent.from_dict(data.get("content") or {}),
            platforms=list(data.get("platforms") or []),
            status=JobStatus(data.get("status", JobStatus.QUEUED.value)),
            created=data.get("created") or data["scheduled_time"],
            last_attempt=data.get("last_attempt"),
            error_message=data.get("error_message"),
            platform_results={
                platform: PlatformResult.from_dict(result)
                for platform, result in results.items()
            },
            attempts=int(data.get("attempts") or 0),
        )


def create_job(
    text: str,
    platforms: List[str],
    scheduled_time: Union[str, datetime],
    media: Optional[List[str]] = None,
    **kwargs,
) -> ScheduledJob:
    """
    Convenience function to create a queued job.

    Args:
        text: Post text
        platforms: Platform identifiers to deliver to
        scheduled_time: When the post is due
        media: Optional media references
        **kwargs: Additional job fields (for example ``id`` or ``created``)

    Returns:
        A new ScheduledJob instance
    """
    job_id = kwargs.pop("id", None) or generate_job_id()

    return ScheduledJob(
        id=job_id,
        scheduled_time=scheduled_time,
        content=PostContent(text=text, media=list(media or [])),
        platforms=platforms,
        **kwargs,
    )
