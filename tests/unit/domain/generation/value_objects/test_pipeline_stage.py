"""Tests for PipelineStage value object."""

import pytest
from pydantic import ValidationError

from pixelforge.domain.generation.value_objects.pipeline_stage import PipelineStage, StageKind


def test_stage_name_and_final_flag():
    first = PipelineStage(kind="character", index=1, total=3, progress_message="Character 1")
    last = PipelineStage(
        kind=StageKind.COMPOSE, index=3, total=3, progress_message="Composing", consumes=[1, 2]
    )

    assert first.name == "character 1/3"
    assert first.is_final is False
    assert last.is_final is True
    assert last.consumes == [1, 2]


def test_index_is_one_based():
    with pytest.raises(ValidationError):
        PipelineStage(kind="render", index=0, total=1, progress_message="Rendering")
