"""
Inbound operations on scheduled posts: schedule, edit, delete and retry.

These are the calls a UI or CLI makes. They validate input and translate
each request into JobStore mutations; every mutation pushes the full
snapshot to the store's subscribers.
"""

from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union
from colored_logger import get_colored_logger

from .errors import InvalidJobStateError, JobNotFoundError, JobValidationError
from .job_store import JobStore
from .models import (
    JobStatus,
    PostContent,
    ScheduledJob,
    create_job,
    format_timestamp,
    parse_timestamp,
    utcnow,
)

logger = get_colored_logger(__name__)

TimeValue = Union[str, datetime]


class JobService:
    """Validated front door to the job store."""

    def __init__(
        self,
        store: JobStore,
        known_platforms: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Job store to mutate
            known_platforms: Platforms that may be targeted; None accepts any
            clock: Time source, replaceable in tests
        """
        self.store = store
        self.known_platforms = (
            {p.lower() for p in known_platforms} if known_platforms is not None else None
        )
        self.clock = clock

    def schedule(
        self,
        text: str,
        platforms: List[str],
        scheduled_time: TimeValue,
        media: Optional[List[str]] = None,
    ) -> ScheduledJob:
        """
        Create a queued job.

        Raises:
            JobValidationError: If the request is invalid
        """
        media = list(media or [])
        if not (text or "").strip() and not media:
            raise JobValidationError("Post must have text or media")

        when = self._validate_time(scheduled_time)
        normalized = self._validate_platforms(platforms)

        job = create_job(text, normalized, when, media=media, created=self.clock())
        self.store.add(job)
        return job

    def edit(
        self,
        job_id: str,
        scheduled_time: Optional[TimeValue] = None,
        platforms: Optional[List[str]] = None,
        text: Optional[str] = None,
        media: Optional[List[str]] = None,
    ) -> ScheduledJob:
        """
        Change the time, platforms or content of a queued job.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidJobStateError: If the job is not queued
            JobValidationError: If a new value is invalid (the job is left untouched)
        """
        job = self._require(job_id)
        if job.status != JobStatus.QUEUED:
            raise InvalidJobStateError(
                f"Only queued jobs can be edited; job {job_id} is {job.status.value}"
            )

        changes = {}
        if scheduled_time is not None:
            changes["scheduled_time"] = self._validate_time(scheduled_time)
        if platforms is not None:
            changes["platforms"] = self._validate_platforms(platforms)
        if text is not None or media is not None:
            content = PostContent(
                text=job.content.text if text is None else text,
                media=list(job.content.media if media is None else media),
            )
            if not content.text.strip() and not content.media:
                raise JobValidationError("Post must have text or media")
            changes["content"] = content

        if not changes:
            return job

        updated = self.store.update(job_id, changes, expected_status=JobStatus.QUEUED)
        if updated is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        logger.info("Edited scheduled job %s (%s)", job_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, job_id: str) -> bool:
        """Remove a job regardless of its status."""
        return self.store.remove(job_id)

    def retry(
        self, job_id: str, scheduled_time: Optional[TimeValue] = None
    ) -> ScheduledJob:
        """
        Put a failed job back in the queue.

        Previous platform results are kept; the error message is cleared.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidJobStateError: If the job has not failed
        """
        job = self._require(job_id)
        if job.status != JobStatus.FAILED:
            raise InvalidJobStateError(
                f"Only failed jobs can be retried; job {job_id} is {job.status.value}"
            )

        changes = {"status": JobStatus.QUEUED, "error_message": None}
        if scheduled_time is not None:
            changes["scheduled_time"] = self._validate_time(scheduled_time)

        updated = self.store.update(job_id, changes, expected_status=JobStatus.FAILED)
        if updated is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        logger.notice(
            "Job %s re-queued for %s", job_id, format_timestamp(updated.scheduled_time)
        )
        return updated

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        return self.store.get(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[ScheduledJob]:
        jobs = self.store.load_all()
        if status is not None:
            jobs = [job for job in jobs if job.status == JobStatus(status)]
        return jobs

    def _require(self, job_id: str) -> ScheduledJob:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def _validate_time(self, value: TimeValue) -> datetime:
        try:
            when = parse_timestamp(value)
        except ValueError as e:
            raise JobValidationError(str(e))

        if when < self.clock():
            raise JobValidationError(
                f"Scheduled time {format_timestamp(when)} is in the past"
            )
        return when

    def _validate_platforms(self, platforms: Optional[List[str]]) -> List[str]:
        normalized = []
        for platform in platforms or []:
            name = str(platform).strip().lower()
            if name and name not in normalized:
                normalized.append(name)

        if not normalized:
            raise JobValidationError("Select at least one platform")

        if self.known_platforms is not None:
            unknown = [p for p in normalized if p not in self.known_platforms]
            if unknown:
                raise JobValidationError(
                    f"Unsupported platform(s): {', '.join(unknown)}"
                )
        return normalized
