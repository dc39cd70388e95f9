"""
Domain Layer Exceptions

This module defines the exception hierarchy for the Domain Layer.
All domain-specific exceptions inherit from DomainException.

Responsibility:
    - Base exception class for domain errors
    - Billing, admission, pipeline and recovery error taxonomy
    - Clear separation from framework exceptions

Architecture Notes:
    - Part of Shared Domain (used across all subdomains)
    - API Layer maps these to HTTP status codes in one place (api/main.py)
    - Worker side funnels PipelineStageError and UploadError into the failure path
"""


class DomainException(Exception):
    """
    Base exception for all domain layer errors.

    This exception serves as the root of the domain exception hierarchy.
    All domain-specific exceptions inherit from this class to enable
    type-safe error handling in Application and API layers.

    Usage:
        - Catch this in Application Layer to handle all domain errors
        - API Layer converts to appropriate HTTP status codes

    Examples:
        >>> raise DomainException("Business rule violation")
    """

    def __init__(self, message: str) -> None:
        """
        Initialize domain exception with error message.

        Args:
            message: Human-readable error description
        """
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"{self.__class__.__name__}(message={self.message!r})"


class InsufficientFundsError(DomainException):
    """
    Raised when an account balance cannot cover a debit.

    User-facing and retryable after a top-up. Raised before any mutation,
    so the account and the job store are untouched.

    Attributes:
        owner_id: Account that was checked
        required: Amount the operation needed
        available: Balance observed at check time

    Examples:
        >>> raise InsufficientFundsError("user-1", required=3, available=2)
    """

    def __init__(
        self,
        owner_id: str,
        required: int,
        available: int,
        message: str | None = None,
    ) -> None:
        self.owner_id = owner_id
        self.required = required
        self.available = available
        super().__init__(
            message
            or f"Insufficient funds: required {required}, available {available}"
        )


class StoreUnavailableError(DomainException):
    """
    Raised when the job store or ledger cannot complete a write.

    At admission this is transient and guarantees that no charge was applied.

    Attributes:
        original_error: Underlying storage exception (optional)
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        if original_error is not None:
            message = f"{message} | Original error: {type(original_error).__name__}: {original_error}"
        super().__init__(message)


class JobAlreadyExistsError(DomainException):
    """
    Raised when admission targets a job id that is already stored.

    Used for idempotent re-submission: the caller looks the job up instead
    of charging twice.
    """

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} already exists")


class PipelineStageError(DomainException):
    """
    Raised when one stage of the generation pipeline fails.

    Covers backend rejection, malformed or empty output, timeouts and
    exhausted API key pools. Always routed to the failure path, never
    surfaced as a partial result.

    Attributes:
        stage: Name of the failed stage (e.g. "character 2/3")
        reason: Short failure description

    Examples:
        >>> raise PipelineStageError("render", "backend returned no image")
    """

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Stage '{stage}' failed: {reason}")


class UploadError(DomainException):
    """
    Raised when the final artifact cannot be written to blob storage.

    Treated exactly like a stage error: the job is refunded and the
    generated bytes are discarded.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)


class NoApiKeyAvailableError(DomainException):
    """Raised when the API key pool has no active key to hand out."""

    def __init__(self, message: str = "No active generation API key available") -> None:
        super().__init__(message)


class RecoveryAmbiguityError(DomainException):
    """
    Raised client-side when the recovery query cannot find the job.

    The original transport error is kept so it can be shown to the user,
    together with the advice to check the job history before retrying
    (re-submitting blindly could charge twice).

    Attributes:
        job_id: Job id the client submitted
        original_error: Transport error that triggered recovery
    """

    def __init__(self, job_id: str, original_error: Exception | None = None) -> None:
        self.job_id = job_id
        self.original_error = original_error
        super().__init__(
            f"Could not confirm outcome of job {job_id} after a connection problem"
            f" ({original_error!r}). Check your generation history before retrying."
        )


class InvalidGenerationRequestError(DomainException):
    """
    Raised when a generation request violates business rules.

    Can contain multiple validation errors so the client gets complete
    feedback in one round trip.

    Attributes:
        errors: List of validation error messages

    Examples:
        >>> raise InvalidGenerationRequestError(
        ...     "Invalid generation request",
        ...     errors=["group mode needs at least one character"],
        ... )
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        if self.errors:
            detailed_message = f"{message}:\n" + "\n".join(
                f"  - {err}" for err in self.errors
            )
            super().__init__(detailed_message)
        else:
            super().__init__(message)

    def has_errors(self) -> bool:
        """Check if any validation errors exist."""
        return len(self.errors) > 0


class InvalidJobTransitionError(DomainException):
    """Raised when a job state change is not allowed by the lifecycle."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id} cannot move from {current} to {target}")


class GenerationBackendError(DomainException):
    """
    Raised by a generation backend adapter when a call fails.

    The worker turns it into a PipelineStageError naming the stage.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)
