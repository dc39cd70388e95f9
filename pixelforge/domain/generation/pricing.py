"""
Generation Pricing Rules

Diamond cost and xp reward of a generation request. Cost is computed from
the request shape before admission; the Admission Gateway never re-derives it.
"""

from typing import Dict

from .value_objects.generation_request import GenerationRequest, ModelTier, Resolution


# ============================================================================
# COSTS
# ============================================================================

FLASH_BASE_COST: int = 1

PRO_BASE_COST: Dict[Resolution, int] = {
    Resolution.R1K: 10,
    Resolution.R2K: 15,
    Resolution.R4K: 20,
}

COST_UPSCALE: int = 1
COST_REMOVE_WATERMARK: int = 1
COST_PER_CHARACTER: int = 1


# ============================================================================
# XP REWARDS
# ============================================================================

XP_PER_GENERATION: int = 10
XP_PER_CHARACTER: int = 5


def calculate_cost(request: GenerationRequest) -> int:
    """
    Calculate diamond cost of a request.

    Rules:
        - base: 1 for flash; 10/15/20 for pro at 1K/2K/4K
        - +1 when the upscaler is used
        - +1 when the watermark is removed
        - group mode: +1 per character

    Examples:
        >>> calculate_cost(GenerationRequest(prompt="cat"))
        1
        >>> calculate_cost(GenerationRequest(prompt="cat", model_tier="pro", resolution="2K", use_upscaler=True))
        16
    """
    if request.model_tier is ModelTier.PRO:
        cost = PRO_BASE_COST[request.resolution]
    else:
        cost = FLASH_BASE_COST

    if request.use_upscaler:
        cost += COST_UPSCALE
    if request.remove_watermark:
        cost += COST_REMOVE_WATERMARK
    if request.is_group:
        cost += COST_PER_CHARACTER * request.character_count

    return cost


def calculate_xp(request: GenerationRequest) -> int:
    """Xp awarded when a job succeeds: per character for groups, flat otherwise."""
    if request.is_group:
        return XP_PER_CHARACTER * request.character_count
    return XP_PER_GENERATION


def describe_charge(request: GenerationRequest) -> str:
    """
    Build the CHARGE ledger description.

    Examples:
        >>> describe_charge(GenerationRequest(prompt="x", model_tier="pro", resolution="4K", use_upscaler=True))
        'Image generation (Pro 4K) + Upscale'
    """
    if request.is_group:
        description = f"Group image ({request.character_count} characters"
        description += f", Pro {request.resolution.value})" if request.model_tier is ModelTier.PRO else ")"
    elif request.model_tier is ModelTier.PRO:
        description = f"Image generation (Pro {request.resolution.value})"
    else:
        description = "Image generation (Flash)"

    if request.use_upscaler:
        description += " + Upscale"
    if request.remove_watermark:
        description += " + NoWatermark"
    return description
