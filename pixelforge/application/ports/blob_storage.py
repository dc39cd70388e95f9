"""
Blob Storage Port

Artifact persistence. put() runs once per successful job, before the job
is marked SUCCEEDED, so SUCCEEDED always implies a retrievable artifact.
"""

from typing import Protocol


class BlobStorageProtocol(Protocol):
    """Implemented by LocalBlobStorage (Infrastructure Layer)."""

    def put(self, data: bytes, content_type: str) -> str:
        """
        Store an artifact.

        Returns:
            Public reference (URL) of the stored artifact

        Raises:
            UploadError: Storage write failed
        """
        ...

    def get(self, ref: str) -> bytes:
        """
        Read an artifact back (reference images for the backend).

        Raises:
            FileNotFoundError: Unknown reference
        """
        ...
