"""
Tests for GenerationRequest value object.

Covers:
- Defaults (single, flash, 1K)
- Group mode character limits
- Prompt / reference requirement
- Aspect ratio format
- Payload round trip and immutability
"""

import pytest
from pydantic import ValidationError

from pixelforge.domain.generation.value_objects.generation_request import (
    MAX_GROUP_CHARACTERS,
    GenerationMode,
    GenerationRequest,
    ModelTier,
    Resolution,
)


def _characters(count: int) -> list[dict]:
    return [{"description": f"character {i}"} for i in range(count)]


def test_defaults():
    request = GenerationRequest(prompt="a red fox")

    assert request.mode is GenerationMode.SINGLE
    assert request.model_tier is ModelTier.FLASH
    assert request.resolution is Resolution.R1K
    assert request.aspect_ratio == "1:1"
    assert request.is_group is False


def test_group_with_characters():
    request = GenerationRequest(mode="group", prompt="beach", characters=_characters(2))

    assert request.is_group
    assert request.character_count == 2


@pytest.mark.parametrize("count", [0, MAX_GROUP_CHARACTERS + 1])
def test_group_character_count_bounds(count):
    with pytest.raises(ValidationError):
        GenerationRequest(mode="group", prompt="beach", characters=_characters(count))


def test_group_accepts_max_characters():
    request = GenerationRequest(
        mode="group", prompt="beach", characters=_characters(MAX_GROUP_CHARACTERS)
    )

    assert request.character_count == 6


def test_characters_rejected_in_single_mode():
    with pytest.raises(ValidationError, match="only allowed in group mode"):
        GenerationRequest(prompt="beach", characters=_characters(1))


def test_prompt_or_reference_required():
    with pytest.raises(ValidationError, match="prompt or reference image is required"):
        GenerationRequest(prompt="   ")

    request = GenerationRequest(reference_refs=["https://cdn.example/ref.png"])
    assert request.prompt == ""


@pytest.mark.parametrize("ratio", ["16:9", "1:1", "9:16"])
def test_valid_aspect_ratio(ratio):
    assert GenerationRequest(prompt="x", aspect_ratio=ratio).aspect_ratio == ratio


@pytest.mark.parametrize("ratio", ["wide", "16-9", "0:1", "1:2:3"])
def test_invalid_aspect_ratio(ratio):
    with pytest.raises(ValidationError):
        GenerationRequest(prompt="x", aspect_ratio=ratio)


def test_empty_character_description_rejected():
    with pytest.raises(ValidationError):
        GenerationRequest(mode="group", prompt="x", characters=[{"description": ""}])


def test_payload_round_trip():
    request = GenerationRequest(
        mode="group",
        prompt="beach",
        model_tier="pro",
        resolution="4K",
        characters=[{"description": "tall man", "reference_ref": "https://cdn.example/a.png"}],
    )

    payload = request.to_payload()

    assert payload["resolution"] == "4K"
    assert GenerationRequest.from_payload(payload) == request


def test_request_is_immutable():
    request = GenerationRequest(prompt="x")

    with pytest.raises(ValidationError):
        request.prompt = "y"
