"""
Generation Backend Port

Contract for the opaque image model. Slow (tens of seconds) and fallible.
"""

from typing import Any, Protocol


class GenerationBackendProtocol(Protocol):
    """Implemented by HttpGenerationBackend (Infrastructure Layer)."""

    def generate(
        self, parameters: dict[str, Any], references: list[bytes], api_key: str
    ) -> bytes:
        """
        Produce one output artifact.

        Args:
            parameters: Stage parameters (prompt, model tier, resolution, ...)
            references: Reference artifacts (uploaded photos, earlier stage outputs)
            api_key: Credential taken from the API key pool

        Returns:
            Artifact bytes

        Raises:
            GenerationBackendError: Rejection, timeout, transport failure or empty output
        """
        ...
