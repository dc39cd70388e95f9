"""Shared API schemas."""

from pixelforge.api.schemas.common import ErrorResponse

__all__ = ["ErrorResponse"]
