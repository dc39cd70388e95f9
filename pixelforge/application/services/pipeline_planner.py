"""
Pipeline Planner

Turns a GenerationRequest into the ordered list of stages a worker runs.

Plans:
    single mode -> [RENDER 1/1]
    group mode  -> [CHARACTER 1/N+1, ..., CHARACTER N/N+1, COMPOSE N+1/N+1]
                   COMPOSE consumes every CHARACTER output.

Upscaling and watermark removal are applied by the final stage only, so
intermediate renders stay cheap.
"""

import logging
from typing import Any

from pixelforge.domain.generation.value_objects.generation_request import (
    GenerationRequest,
)
from pixelforge.domain.generation.value_objects.pipeline_stage import (
    PipelineStage,
    StageKind,
)

logger = logging.getLogger(__name__)


class PipelinePlanner:
    """
    Stateless planner.

    Examples:
        >>> planner = PipelinePlanner()
        >>> [s.name for s in planner.plan(GenerationRequest(prompt="fox"))]
        ['render 1/1']
        >>> group = GenerationRequest(
        ...     mode="group", prompt="beach",
        ...     characters=[{"description": "a"}, {"description": "b"}],
        ... )
        >>> [s.progress_message for s in planner.plan(group)]
        ['Drawing character 1/2', 'Drawing character 2/2', 'Composing final image']
    """

    def plan(self, request: GenerationRequest) -> list[PipelineStage]:
        if not request.is_group:
            stages = [
                PipelineStage(
                    kind=StageKind.RENDER,
                    index=1,
                    total=1,
                    progress_message="Rendering image",
                    parameters=self._base_parameters(request, final=True),
                    reference_refs=list(request.reference_refs),
                )
            ]
        else:
            stages = self._plan_group(request)

        logger.debug(f"Planned {len(stages)} stage(s): {[s.name for s in stages]}")
        return stages

    def _plan_group(self, request: GenerationRequest) -> list[PipelineStage]:
        count = request.character_count
        total = count + 1
        stages: list[PipelineStage] = []

        for i, character in enumerate(request.characters, start=1):
            parameters = self._base_parameters(request, final=False)
            parameters["prompt"] = (
                f"{character.description}. Scene: {request.prompt}".strip()
            )
            parameters["character_index"] = i
            stages.append(
                PipelineStage(
                    kind=StageKind.CHARACTER,
                    index=i,
                    total=total,
                    progress_message=f"Drawing character {i}/{count}",
                    parameters=parameters,
                    reference_refs=[character.reference_ref] if character.reference_ref else [],
                )
            )

        compose_parameters = self._base_parameters(request, final=True)
        compose_parameters["character_count"] = count
        stages.append(
            PipelineStage(
                kind=StageKind.COMPOSE,
                index=total,
                total=total,
                progress_message="Composing final image",
                parameters=compose_parameters,
                reference_refs=list(request.reference_refs),
                consumes=list(range(1, total)),
            )
        )
        return stages

    @staticmethod
    def _base_parameters(request: GenerationRequest, final: bool) -> dict[str, Any]:
        parameters: dict[str, Any] = {
            "prompt": request.prompt,
            "model_tier": request.model_tier.value,
            "resolution": request.resolution.value,
            "aspect_ratio": request.aspect_ratio,
            "style": request.style,
            "negative_prompt": request.negative_prompt,
            "seed": request.seed,
            "use_upscaler": request.use_upscaler and final,
            "remove_watermark": request.remove_watermark and final,
        }
        return parameters
