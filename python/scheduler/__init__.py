"""
Scheduler module for delayed social media posts.

This module provides:
- Durable, atomically rewritten job storage
- A polling scheduler that delivers due posts
- A registry of platform executors with normalized results
- Crash recovery for jobs left in flight
- Validated schedule/edit/delete/retry operations
"""

from .credentials import CredentialResolver, EnvCredentialResolver, StaticCredentialResolver
from .dispatcher import PlatformDispatcher, PlatformExecutor
from .errors import (
    InvalidJobStateError,
    JobNotFoundError,
    JobValidationError,
    SchedulerError,
    StoreReadError,
    StoreWriteError,
)
from .history import PostHistory
from .instance_lock import InstanceLock
from .job_service import JobService
from .job_store import JobStore, LoadResult
from .models import JobStatus, PlatformResult, PostContent, ScheduledJob, create_job
from .post_scheduler import JobOutcome, PostScheduler, TickSummary
from .recovery import RecoveryPass

__all__ = [
    "CredentialResolver",
    "EnvCredentialResolver",
    "StaticCredentialResolver",
    "PlatformDispatcher",
    "PlatformExecutor",
    "SchedulerError",
    "StoreReadError",
    "StoreWriteError",
    "JobValidationError",
    "JobNotFoundError",
    "InvalidJobStateError",
    "PostHistory",
    "InstanceLock",
    "JobService",
    "JobStore",
    "LoadResult",
    "JobStatus",
    "PlatformResult",
    "PostContent",
    "ScheduledJob",
    "create_job",
    "JobOutcome",
    "PostScheduler",
    "TickSummary",
    "RecoveryPass",
]
