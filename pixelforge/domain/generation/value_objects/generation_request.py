"""
GenerationRequest Value Object

Typed view of the opaque generation payload. Admission stores the payload
as-is; pricing and the pipeline planner read it through this model.

Business Rules:
    - single mode: one rendered image, no characters
    - group mode: 1..MAX_GROUP_CHARACTERS character descriptions,
      each rendered separately and then composed
    - resolution only matters for the pro model tier
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_GROUP_CHARACTERS = 6
MAX_PROMPT_LENGTH = 2000


class GenerationMode(str, Enum):
    """Shape of the requested artifact."""

    SINGLE = "single"
    GROUP = "group"


class ModelTier(str, Enum):
    """Backend model family. Pro is slower and priced by resolution."""

    FLASH = "flash"
    PRO = "pro"


class Resolution(str, Enum):
    """Output resolution for the pro tier."""

    R1K = "1K"
    R2K = "2K"
    R4K = "4K"


class CharacterSpec(BaseModel):
    """
    One character of a group image.

    Attributes:
        description: What the character looks like / does
        reference_ref: Optional blob reference of a face/pose photo
    """

    description: str = Field(min_length=1, max_length=500)
    reference_ref: Optional[str] = None

    model_config = {"frozen": True}


class GenerationRequest(BaseModel):
    """
    Immutable value object describing one generation request.

    Examples:
        >>> req = GenerationRequest(prompt="a red fox in snow")
        >>> req.mode
        <GenerationMode.SINGLE: 'single'>

        >>> group = GenerationRequest(
        ...     mode="group",
        ...     prompt="three friends at the beach",
        ...     characters=[{"description": "tall man"}, {"description": "girl with hat"}],
        ... )
        >>> group.character_count
        2
    """

    mode: GenerationMode = GenerationMode.SINGLE
    prompt: str = Field(default="", max_length=MAX_PROMPT_LENGTH)
    model_tier: ModelTier = ModelTier.FLASH
    resolution: Resolution = Resolution.R1K
    aspect_ratio: str = "1:1"
    style: Optional[str] = None
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    use_upscaler: bool = False
    remove_watermark: bool = False
    reference_refs: list[str] = Field(default_factory=list)
    characters: list[CharacterSpec] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, value: str) -> str:
        parts = value.split(":")
        if len(parts) != 2 or not all(p.isdigit() and int(p) > 0 for p in parts):
            raise ValueError(f"aspect_ratio must look like 'W:H', got '{value}'")
        return value

    @model_validator(mode="after")
    def validate_shape(self) -> "GenerationRequest":
        if self.mode is GenerationMode.GROUP:
            if not self.characters:
                raise ValueError("group mode needs at least one character")
            if len(self.characters) > MAX_GROUP_CHARACTERS:
                raise ValueError(
                    f"group mode supports at most {MAX_GROUP_CHARACTERS} characters, "
                    f"got {len(self.characters)}"
                )
        elif self.characters:
            raise ValueError("characters are only allowed in group mode")

        if not self.prompt.strip() and not self.reference_refs and not self.characters:
            raise ValueError("prompt or reference image is required")
        return self

    @property
    def character_count(self) -> int:
        return len(self.characters)

    @property
    def is_group(self) -> bool:
        return self.mode is GenerationMode.GROUP

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the opaque payload dict stored on the job."""
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "GenerationRequest":
        return cls.model_validate(payload)
