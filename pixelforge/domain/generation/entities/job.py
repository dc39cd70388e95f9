"""
GenerationJob Entity

Durable record of one admitted generation request, tracked from admission
to its terminal outcome.

Responsibility:
    - Hold owner, opaque payload, charged cost and lifecycle state
    - Enforce the PENDING -> {SUCCEEDED, FAILED} state machine
    - Serialize to/from the flat string mapping stored in a Redis hash

Architecture Notes:
    - Explicit status tag. A failed job keeps its row and its failure reason,
      so "not found" and "failed" are never confused.
    - Mutated only by the Worker Executor (progress, terminal transition)
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pixelforge.domain.shared.exceptions import InvalidJobTransitionError

# Failure reasons stored on the job row are capped to keep hashes small
MAX_FAILURE_REASON_LENGTH = 200


def utc_now() -> datetime:
    """Timezone-aware current time used for all job timestamps."""
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """
    Lifecycle states of a GenerationJob.

    States:
        PENDING: Admitted and charged, waiting for or inside a worker
        SUCCEEDED: Artifact uploaded, result_ref set (terminal)
        FAILED: Pipeline aborted, cost refunded (terminal)
    """

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.PENDING


@dataclass
class GenerationJob:
    """
    Mutable entity representing one paid generation job.

    Attributes:
        owner_id: Account that was charged for the job
        payload: Opaque generation parameters (re-read by the worker)
        cost: Diamonds debited at admission (positive integer)
        id: Job identifier (UUID string, doubles as Celery task id)
        state: Current lifecycle state
        progress: Advisory progress text, never read by billing
        result_ref: Public reference of the uploaded artifact (SUCCEEDED only)
        failure_reason: Truncated failure description (FAILED only)
        created_at: Admission timestamp
        updated_at: Last mutation timestamp

    Examples:
        >>> job = GenerationJob(owner_id="user-1", payload={"prompt": "cat"}, cost=3)
        >>> job.state
        <JobState.PENDING: 'pending'>
        >>> job.mark_succeeded("https://cdn.example/abc.png")
        >>> job.is_terminal()
        True
    """

    owner_id: str
    payload: dict[str, Any]
    cost: int

    id: str = field(default_factory=lambda: str(uuid4()))
    state: JobState = JobState.PENDING
    progress: Optional[str] = None
    result_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise ValueError("owner_id is required")
        if int(self.cost) <= 0:
            raise ValueError(f"cost must be a positive integer, got {self.cost}")
        self.cost = int(self.cost)

    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def update_progress(self, text: str) -> None:
        """Set advisory progress text. Ignored once the job is terminal."""
        if self.is_terminal():
            return
        self.progress = text
        self.updated_at = utc_now()

    def mark_succeeded(self, result_ref: str) -> None:
        """
        Transition PENDING -> SUCCEEDED.

        Re-applying the same transition is a no-op so worker redelivery
        cannot change a finished job.

        Raises:
            InvalidJobTransitionError: If the job already FAILED
            ValueError: If result_ref is empty
        """
        if not result_ref:
            raise ValueError("result_ref is required to mark a job succeeded")
        if self.state is JobState.SUCCEEDED:
            return
        if self.state is JobState.FAILED:
            raise InvalidJobTransitionError(self.id, self.state.value, "succeeded")
        self.state = JobState.SUCCEEDED
        self.result_ref = result_ref
        self.updated_at = utc_now()

    def mark_failed(self, reason: str) -> None:
        """
        Transition PENDING -> FAILED with a truncated reason.

        Raises:
            InvalidJobTransitionError: If the job already SUCCEEDED
        """
        if self.state is JobState.FAILED:
            return
        if self.state is JobState.SUCCEEDED:
            raise InvalidJobTransitionError(self.id, self.state.value, "failed")
        self.state = JobState.FAILED
        self.failure_reason = truncate_reason(reason, MAX_FAILURE_REASON_LENGTH)
        self.updated_at = utc_now()

    def to_redis_mapping(self) -> dict[str, str]:
        """
        Serialize entity to a flat str->str mapping for HSET.

        Optional fields are written as empty strings so a single HSET
        replaces the whole record.
        """
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "payload": json.dumps(self.payload),
            "cost": str(self.cost),
            "state": self.state.value,
            "progress": self.progress or "",
            "result_ref": self.result_ref or "",
            "failure_reason": self.failure_reason or "",
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_redis_mapping(cls, data: dict[str, str]) -> "GenerationJob":
        """
        Deserialize entity from HGETALL output.

        Raises:
            KeyError: If a required field is missing
        """
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            payload=json.loads(data.get("payload") or "{}"),
            cost=int(data["cost"]),
            state=JobState(data.get("state", JobState.PENDING.value)),
            progress=data.get("progress") or None,
            result_ref=data.get("result_ref") or None,
            failure_reason=data.get("failure_reason") or None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(
                data.get("updated_at") or data["created_at"]
            ),
        )

    def __repr__(self) -> str:
        return (
            f"GenerationJob(id={self.id!r}, owner_id={self.owner_id!r}, "
            f"cost={self.cost}, state={self.state.value!r})"
        )


def truncate_reason(reason: str, limit: int) -> str:
    """Collapse whitespace and cut a failure reason to `limit` characters."""
    text = " ".join(str(reason or "Unknown error").split())
    return text[:limit]
