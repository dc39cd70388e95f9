"""
PipelineStage Value Object

One step of a worker's sequential generation plan. Ephemeral: only its
progress message outlives the worker invocation.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StageKind(str, Enum):
    """
    RENDER: Single-image generation (the whole plan for single mode)
    CHARACTER: Render one character of a group image
    COMPOSE: Combine all character renders into the final artifact
    """

    RENDER = "render"
    CHARACTER = "character"
    COMPOSE = "compose"


class PipelineStage(BaseModel):
    """
    Immutable description of one pipeline step.

    Attributes:
        kind: Stage kind
        index: 1-based position in the plan
        total: Number of stages in the plan
        progress_message: Text written to the job before the stage starts
        parameters: Backend parameters for this stage
        reference_refs: Blob references sent with the request
        consumes: 1-based indices of earlier stages whose outputs are inputs here

    Examples:
        >>> stage = PipelineStage(
        ...     kind="compose", index=3, total=3,
        ...     progress_message="Composing final image", consumes=[1, 2],
        ... )
        >>> stage.is_final
        True
    """

    kind: StageKind
    index: int = Field(ge=1)
    total: int = Field(ge=1)
    progress_message: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    reference_refs: list[str] = Field(default_factory=list)
    consumes: list[int] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_final(self) -> bool:
        return self.index == self.total

    @property
    def name(self) -> str:
        return f"{self.kind.value} {self.index}/{self.total}"
