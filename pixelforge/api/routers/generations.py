"""
API Router for Generation Admission

Responsibility:
    HTTP interface of the Admission Gateway: accepts a generation request,
    charges the owner and queues the job. Returns 202 Accepted with the job
    id; the image itself arrives later (push event or job status).

Architecture Notes:
    - Part of API Layer (Presentation)
    - Depends on Application Layer (SubmitJobUseCase via dependency injection)
    - Cost is computed by the command from the request shape, never sent by
      the client
    - Domain errors (InsufficientFundsError, StoreUnavailableError,
      InvalidGenerationRequestError) are mapped by the global handlers

Contains:
    - POST /generations        - Admit a generation job
    - GET  /generations/quote  - Price a request without charging
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError

from pixelforge.api.dependencies import get_current_owner, get_submit_job_use_case
from pixelforge.api.schemas.common import ErrorResponse, error_detail
from pixelforge.application.commands import SubmitGenerationCommand
from pixelforge.application.services import (
    JobDispatchError,
    SubmitJobResult,
    SubmitJobUseCase,
)
from pixelforge.domain.generation.pricing import (
    calculate_cost,
    calculate_xp,
    describe_charge,
)
from pixelforge.domain.generation.value_objects.generation_request import (
    MAX_GROUP_CHARACTERS,
    GenerationMode,
    GenerationRequest,
    ModelTier,
    Resolution,
)
from pixelforge.domain.shared.exceptions import InvalidGenerationRequestError

logger = logging.getLogger(__name__)


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class QuoteResponse(BaseModel):
    """
    Price of a generation request.

    Attributes:
        cost: Diamonds that admission would charge
        xp: Xp awarded if the job succeeds
        description: CHARGE entry description
    """

    cost: int = Field(gt=0)
    xp: int = Field(ge=0)
    description: str

    class Config:
        json_schema_extra = {
            "example": {
                "cost": 16,
                "xp": 10,
                "description": "Image generation (Pro 2K) + Upscale",
            }
        }


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================


router = APIRouter(
    prefix="/generations",
    tags=["generations"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid request"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing API key"},
        402: {"model": ErrorResponse, "description": "Payment Required - Insufficient funds"},
        409: {"model": ErrorResponse, "description": "Conflict - Job id already used"},
        503: {"model": ErrorResponse, "description": "Service Unavailable - Retry later"},
    },
)


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SubmitJobResult,
    summary="Submit a generation job",
    description=(
        "Charges the computed cost and queues the job. Send a client-generated "
        "UUID as client_request_id (or Idempotency-Key header) to make the "
        "request safe to repeat: the job id equals that UUID and a repeated "
        "submission returns the stored job without charging again."
    ),
)
async def submit_generation(
    body: Dict[str, Any] = Body(
        ...,
        examples=[
            {
                "prompt": "a red fox in snow",
                "model_tier": "pro",
                "resolution": "2K",
                "use_upscaler": True,
                "client_request_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
            }
        ],
    ),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    owner_id: str = Depends(get_current_owner),
    use_case: SubmitJobUseCase = Depends(get_submit_job_use_case),
) -> SubmitJobResult:
    """
    Admit a generation request.

    Process Flow:
        1. Split client_request_id from the request body
        2. Build SubmitGenerationCommand (validation -> 400)
        3. SubmitJobUseCase.execute() (402 / 503 via global handlers)
        4. Return 202 with job id, cost and balance after the debit

    Raises:
        HTTPException: 503 DISPATCH_FAILED when the job was charged and
            stored but could not be queued (re-dispatch with
            POST /api/jobs/{job_id}/dispatch)
    """
    request_body = dict(body)
    client_request_id = request_body.pop("client_request_id", None) or idempotency_key

    command = SubmitGenerationCommand.from_api_request(
        owner_id=owner_id,
        request=request_body,
        client_request_id=client_request_id,
    )

    try:
        result = await use_case.execute(command)
    except JobDispatchError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail(
                "DISPATCH_FAILED",
                "Job was charged and recorded but could not be queued",
                {"job_id": e.job_id, "dispatch_url": f"/api/jobs/{e.job_id}/dispatch"},
            ),
        ) from e

    logger.info(
        f"Generation admitted: job={result.job_id} owner={owner_id} "
        f"cost={result.cost} duplicate={result.duplicate}"
    )
    return result


@router.get(
    "/quote",
    status_code=status.HTTP_200_OK,
    response_model=QuoteResponse,
    summary="Price a generation request",
    description="Returns the cost admission would charge. Nothing is charged.",
)
async def quote_generation(
    mode: GenerationMode = Query(default=GenerationMode.SINGLE),
    model_tier: ModelTier = Query(default=ModelTier.FLASH),
    resolution: Resolution = Query(default=Resolution.R1K),
    use_upscaler: bool = Query(default=False),
    remove_watermark: bool = Query(default=False),
    characters: int = Query(default=0, ge=0, le=MAX_GROUP_CHARACTERS),
) -> QuoteResponse:
    """Price a request shape; character descriptions do not affect the cost."""
    try:
        request = GenerationRequest(
            mode=mode,
            prompt="quote",
            model_tier=model_tier,
            resolution=resolution,
            use_upscaler=use_upscaler,
            remove_watermark=remove_watermark,
            characters=[
                {"description": f"character {i + 1}"} for i in range(characters)
            ],
        )
    except ValidationError as e:
        raise InvalidGenerationRequestError(
            "Invalid quote request", errors=[err["msg"] for err in e.errors()]
        ) from e

    return QuoteResponse(
        cost=calculate_cost(request),
        xp=calculate_xp(request),
        description=describe_charge(request),
    )
