"""
Domain Layer - Core Business Logic

Heart of the PixelForge application. Contains billing and job lifecycle
rules, entities, value objects and repository interfaces. Framework-independent.

Architecture:
    - Clean Architecture: Domain Layer is the center, no external dependencies
    - Dependency Inversion: Domain defines interfaces, Infrastructure implements

Subdomains:
    - generation: Paid generation jobs, ledger, pricing
    - shared: Cross-subdomain concepts (exceptions)

Usage:
    >>> from pixelforge.domain import GenerationJob, DomainException
    >>> from pixelforge.domain.generation.pricing import calculate_cost
"""

from .generation import (
    Account,
    GenerationJob,
    GenerationRequest,
    JobState,
    LedgerEntry,
    TransactionKind,
)
from .shared import DomainException

__all__ = [
    "Account",
    "DomainException",
    "GenerationJob",
    "GenerationRequest",
    "JobState",
    "LedgerEntry",
    "TransactionKind",
]
