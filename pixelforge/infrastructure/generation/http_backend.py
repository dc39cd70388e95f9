"""
HTTP Generation Backend

Adapter for the remote image model. One call = one stage output.

Request (JSON POST to GENERATION_BACKEND_URL):
    {"parameters": {...stage parameters...},
     "references": [<base64 image>, ...]}
    Header "X-API-Key: <pooled key>"

Response:
    - image/* body: raw artifact bytes
    - application/json: {"image_base64": "..."} (missing or empty -> error)
"""

import base64
import binascii
import logging
import os
from typing import Any, Optional

import httpx

from pixelforge.domain.shared.exceptions import GenerationBackendError

logger = logging.getLogger(__name__)


class HttpGenerationBackend:
    """
    Synchronous httpx client for the generation service.

    Runs inside Celery workers, so it blocks; a stage is expected to take
    tens of seconds (GENERATION_TIMEOUT, default 120s).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url or os.getenv(
            "GENERATION_BACKEND_URL", "http://localhost:9000/v1/generate"
        )
        self.timeout = timeout or float(os.getenv("GENERATION_TIMEOUT", "120"))
        self.client = client or httpx.Client(timeout=self.timeout)

    def generate(
        self, parameters: dict[str, Any], references: list[bytes], api_key: str
    ) -> bytes:
        """
        Produce one artifact.

        Raises:
            GenerationBackendError: Transport failure, timeout, non-2xx status
                or a response without image data
        """
        body = {
            "parameters": parameters,
            "references": [base64.b64encode(ref).decode("ascii") for ref in references],
        }
        try:
            response = self.client.post(
                self.base_url, json=body, headers={"X-API-Key": api_key}
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise GenerationBackendError(
                f"Backend timed out after {self.timeout}s", original_error=e
            ) from e
        except httpx.HTTPStatusError as e:
            raise GenerationBackendError(
                f"Backend rejected request: HTTP {e.response.status_code}",
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise GenerationBackendError(f"Backend unreachable: {e}", original_error=e) from e

        output = self._extract_image(response)
        logger.debug(f"Backend returned {len(output)} bytes")
        return output

    def _extract_image(self, response: httpx.Response) -> bytes:
        content_type = response.headers.get("content-type", "")
        if content_type.startswith("image/"):
            data = response.content
        else:
            try:
                encoded = response.json().get("image_base64") or ""
                data = base64.b64decode(encoded, validate=True)
            except (ValueError, AttributeError, binascii.Error) as e:
                raise GenerationBackendError(
                    "Backend returned malformed output", original_error=e
                ) from e
        if not data:
            raise GenerationBackendError("Backend returned no image")
        return data

    def close(self) -> None:
        self.client.close()
