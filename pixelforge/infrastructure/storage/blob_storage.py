"""
Local Blob Storage

Stores generated artifacts on the local file system and hands out public
references under a configurable base URL (a reverse proxy or CDN serves
BLOB_STORAGE_DIR).

Responsibility:
    - Persist final artifacts atomically (temp file + rename)
    - Resolve public references back to bytes (reference images)
    - Implements BlobStorageProtocol from Application Layer

Storage Structure:
    {BLOB_STORAGE_DIR}/{yyyy}/{mm}/{uuid}.{ext}
    Public ref: {BLOB_PUBLIC_BASE_URL}/{yyyy}/{mm}/{uuid}.{ext}
"""

import logging
import os
from pathlib import Path
from typing import Optional
from uuid import uuid4

from pixelforge.domain.generation.entities.job import utc_now
from pixelforge.domain.shared.exceptions import UploadError

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


class LocalBlobStorage:
    """
    File system artifact storage.

    Examples:
        >>> storage = LocalBlobStorage("/var/lib/pixelforge/blobs", "https://cdn.example/blobs")
        >>> ref = storage.put(png_bytes, "image/png")
        >>> ref
        'https://cdn.example/blobs/2026/10/3f2a....png'
        >>> storage.get(ref) == png_bytes
        True
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        self.base_dir = Path(
            base_dir or os.getenv("BLOB_STORAGE_DIR", "/tmp/pixelforge/blobs")
        )
        self.public_base_url = (
            public_base_url
            or os.getenv("BLOB_PUBLIC_BASE_URL", "http://localhost:8000/blobs")
        ).rstrip("/")

    def put(self, data: bytes, content_type: str) -> str:
        """
        Store `data` and return its public reference.

        Raises:
            UploadError: Empty data, unsupported content type or file system failure
        """
        if not data:
            raise UploadError("Refusing to store an empty artifact")
        extension = CONTENT_TYPE_EXTENSIONS.get(content_type)
        if extension is None:
            raise UploadError(f"Unsupported content type: {content_type}")

        now = utc_now()
        key = f"{now:%Y}/{now:%m}/{uuid4()}.{extension}"
        target = self.base_dir / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write_file(target, data)
        except OSError as e:
            logger.error(f"Failed to store artifact {key}: {e}")
            raise UploadError(f"Failed to store artifact {key}", original_error=e) from e

        logger.info(f"Stored artifact {key} ({len(data)} bytes)")
        return f"{self.public_base_url}/{key}"

    def get(self, ref: str) -> bytes:
        """
        Read an artifact by public reference or storage key.

        Raises:
            FileNotFoundError: Unknown reference
            ValueError: Reference escapes the storage directory
        """
        path = self._resolve(ref)
        return path.read_bytes()

    def _resolve(self, ref: str) -> Path:
        key = ref[len(self.public_base_url) :] if ref.startswith(self.public_base_url) else ref
        path = (self.base_dir / key.lstrip("/")).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Reference outside blob storage: {ref}")
        return path

    def _atomic_write_file(self, file_path: Path, data: bytes) -> None:
        # Readers never see a partially written artifact
        tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        os.chmod(tmp_path, 0o644)
        tmp_path.replace(file_path)
        logger.debug(f"Atomic write: {len(data)} bytes to {file_path}")
