"""
Storage Infrastructure Module

Exports:
    - LocalBlobStorage: File system artifact storage (implements BlobStorageProtocol)
"""

from .blob_storage import LocalBlobStorage

__all__ = ["LocalBlobStorage"]
