"""
Tests for PipelinePlanner.

Covers:
- Single mode: one RENDER stage
- Group mode: N CHARACTER stages + COMPOSE consuming all of them
- Final-only flags (upscaler, watermark removal)
"""

from pixelforge.application.services import PipelinePlanner
from pixelforge.domain.generation.value_objects.generation_request import (
    GenerationRequest,
)
from pixelforge.domain.generation.value_objects.pipeline_stage import StageKind


def test_single_request_plans_one_render_stage():
    request = GenerationRequest(
        prompt="fox",
        use_upscaler=True,
        reference_refs=["https://cdn.example/ref.png"],
    )

    stages = PipelinePlanner().plan(request)

    assert len(stages) == 1
    stage = stages[0]
    assert stage.kind is StageKind.RENDER
    assert stage.name == "render 1/1"
    assert stage.progress_message == "Rendering image"
    assert stage.is_final
    assert stage.parameters["use_upscaler"] is True
    assert stage.reference_refs == ["https://cdn.example/ref.png"]
    assert stage.consumes == []


def test_group_request_plans_characters_then_compose():
    request = GenerationRequest(
        mode="group",
        prompt="beach party",
        remove_watermark=True,
        characters=[
            {"description": "tall man", "reference_ref": "https://cdn.example/face.png"},
            {"description": "girl with hat"},
            {"description": "old dog"},
        ],
    )

    stages = PipelinePlanner().plan(request)

    assert [s.kind for s in stages] == [
        StageKind.CHARACTER,
        StageKind.CHARACTER,
        StageKind.CHARACTER,
        StageKind.COMPOSE,
    ]
    assert [s.progress_message for s in stages] == [
        "Drawing character 1/3",
        "Drawing character 2/3",
        "Drawing character 3/3",
        "Composing final image",
    ]
    assert stages[0].parameters["prompt"] == "tall man. Scene: beach party"
    assert stages[0].reference_refs == ["https://cdn.example/face.png"]
    assert stages[1].reference_refs == []

    compose = stages[-1]
    assert compose.consumes == [1, 2, 3]
    assert compose.parameters["character_count"] == 3
    assert compose.is_final


def test_final_only_flags_apply_to_last_stage():
    request = GenerationRequest(
        mode="group",
        prompt="x",
        use_upscaler=True,
        remove_watermark=True,
        characters=[{"description": "a"}],
    )

    character, compose = PipelinePlanner().plan(request)

    assert character.parameters["use_upscaler"] is False
    assert character.parameters["remove_watermark"] is False
    assert compose.parameters["use_upscaler"] is True
    assert compose.parameters["remove_watermark"] is True
