"""
Generation Subdomain

Paid image generation jobs: entities, value objects, pricing and
repository interfaces.

Exports:
    - GenerationJob, JobState: Job entity and its explicit state tag
    - Account, LedgerEntry, TransactionKind: Billing records
    - ApiKey: Pooled backend credential
    - GenerationRequest, PipelineStage: Value objects
    - calculate_cost, calculate_xp: Pricing rules
    - JobRepositoryProtocol, BillingLedgerProtocol: Repository interfaces
"""

from .entities import (
    Account,
    ApiKey,
    GenerationJob,
    JobState,
    LedgerEntry,
    TransactionKind,
    truncate_reason,
)
from .pricing import calculate_cost, calculate_xp, describe_charge
from .repositories import BillingLedgerProtocol, JobRepositoryProtocol
from .value_objects import (
    CharacterSpec,
    GenerationMode,
    GenerationRequest,
    ModelTier,
    PipelineStage,
    Resolution,
    StageKind,
)

__all__ = [
    "Account",
    "ApiKey",
    "BillingLedgerProtocol",
    "CharacterSpec",
    "GenerationJob",
    "GenerationMode",
    "GenerationRequest",
    "JobRepositoryProtocol",
    "JobState",
    "LedgerEntry",
    "ModelTier",
    "PipelineStage",
    "Resolution",
    "StageKind",
    "TransactionKind",
    "calculate_cost",
    "calculate_xp",
    "describe_charge",
    "truncate_reason",
]
