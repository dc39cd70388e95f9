"""
Shared Application Models

Responsibility:
    Contains shared models used across Application Layer.
    Prevents circular dependencies and code duplication.

Contains:
    - JobStatus: API-facing job lifecycle status
    - JobEventType: Push event types
    - build_job_event: Push event envelope

Does NOT contain:
    - Business logic (belongs to Domain Layer)
    - HTTP models (belongs to API Layer)
"""

from enum import Enum
from typing import Any

from pixelforge.domain.generation.entities.job import JobState, utc_now


class JobStatus(str, Enum):
    """
    Status of a generation job as reported to clients.

    Mirrors the domain JobState; kept separate so the API contract does not
    change when the domain state machine grows internal states.

    Usage:
        >>> JobStatus.from_state(JobState.SUCCEEDED)
        <JobStatus.SUCCEEDED: 'succeeded'>
    """

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_state(cls, state: JobState) -> "JobStatus":
        return cls(state.value)

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


class JobEventType(str, Enum):
    """Push channel event types. Only SUCCEEDED and FAILED are terminal."""

    PROGRESS = "progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobEventType.PROGRESS


TERMINAL_EVENT_TYPES = frozenset(
    {JobEventType.SUCCEEDED.value, JobEventType.FAILED.value}
)


def build_job_event(job_id: str, event_type: JobEventType, **fields: Any) -> dict[str, Any]:
    """
    Push event with the common envelope filled in.

    Examples:
        >>> build_job_event("job-1", JobEventType.SUCCEEDED, result_ref="https://cdn/x.png")
        {'job_id': 'job-1', 'type': 'succeeded', 'message': None,
         'result_ref': 'https://cdn/x.png', 'failure_reason': None, 'timestamp': '...'}
    """
    event = {
        "job_id": job_id,
        "type": event_type.value,
        "message": None,
        "result_ref": None,
        "failure_reason": None,
        "timestamp": utc_now().isoformat(),
    }
    event.update(fields)
    return event
