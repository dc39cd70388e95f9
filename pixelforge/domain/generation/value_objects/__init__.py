"""Generation value objects: typed request view and pipeline stages."""

from .generation_request import (
    MAX_GROUP_CHARACTERS,
    CharacterSpec,
    GenerationMode,
    GenerationRequest,
    ModelTier,
    Resolution,
)
from .pipeline_stage import PipelineStage, StageKind

__all__ = [
    "MAX_GROUP_CHARACTERS",
    "CharacterSpec",
    "GenerationMode",
    "GenerationRequest",
    "ModelTier",
    "PipelineStage",
    "Resolution",
    "StageKind",
]
