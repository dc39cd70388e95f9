"""
Shared Domain Module

Shared domain concepts used across subdomains.

This module exports:
    - DomainException and the billing/pipeline error taxonomy
"""

from .exceptions import (
    DomainException,
    GenerationBackendError,
    InsufficientFundsError,
    InvalidGenerationRequestError,
    InvalidJobTransitionError,
    JobAlreadyExistsError,
    NoApiKeyAvailableError,
    PipelineStageError,
    RecoveryAmbiguityError,
    StoreUnavailableError,
    UploadError,
)

__all__ = [
    "DomainException",
    "GenerationBackendError",
    "InsufficientFundsError",
    "InvalidGenerationRequestError",
    "InvalidJobTransitionError",
    "JobAlreadyExistsError",
    "NoApiKeyAvailableError",
    "PipelineStageError",
    "RecoveryAmbiguityError",
    "StoreUnavailableError",
    "UploadError",
]
