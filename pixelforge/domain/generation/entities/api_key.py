"""ApiKey entity: one credential in the shared generation backend key pool."""

from dataclasses import dataclass


@dataclass
class ApiKey:
    """
    Pooled backend credential.

    Attributes:
        id: Stable key identifier (safe to log)
        value: Secret sent to the generation backend (never logged)
        usage_count: Number of times the key was handed out
        active: Inactive keys are never selected
    """

    id: str
    value: str
    usage_count: int = 0
    active: bool = True

    def masked(self) -> str:
        """Return the secret with everything but the last 4 characters hidden."""
        if len(self.value) <= 4:
            return "****"
        return "*" * (len(self.value) - 4) + self.value[-4:]

    def __repr__(self) -> str:
        return f"ApiKey(id={self.id!r}, usage_count={self.usage_count}, active={self.active})"
