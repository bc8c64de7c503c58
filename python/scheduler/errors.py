"""
Exception types raised by the scheduling core.

Per-platform failures never surface as exceptions; they are folded into
PlatformResult objects. Only storage problems and invalid inbound requests
are raised to callers.
"""


class SchedulerError(Exception):
    """Base class for scheduling errors."""


class StoreReadError(SchedulerError):
    """The job snapshot exists but could not be read or parsed."""


class StoreWriteError(SchedulerError):
    """The job snapshot could not be written; the previous file is intact."""


class JobValidationError(SchedulerError, ValueError):
    """An inbound request carried invalid job data."""


class JobNotFoundError(SchedulerError, KeyError):
    """No job with the requested id exists in the store."""

    def __str__(self) -> str:
        # KeyError repr-quotes its argument
        return str(self.args[0]) if self.args else ""


class InvalidJobStateError(SchedulerError):
    """The operation is not allowed for the job's current status."""
