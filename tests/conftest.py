"""
Pytest Configuration and Shared Fixtures

Fixtures:
    - owner_id: Sample account owner
    - sample_job_id: Sample job id (UUID string)
    - single_request_payload / group_request_payload: Generation payloads

Architecture Notes:
    - Unit tests never touch a real Redis, Celery broker or backend:
      infrastructure tests use MagicMock Redis doubles, application tests
      use the in-memory fakes from tests/unit/application/conftest.py and
      API tests override FastAPI dependencies.

Usage:
    def test_something(owner_id, single_request_payload):
        ...
"""

import logging
from uuid import uuid4

import pytest

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================================
# IDENTIFIERS
# ============================================================================


@pytest.fixture
def owner_id() -> str:
    """Account owner used across tests."""
    return "user-1"


@pytest.fixture
def sample_job_id() -> str:
    """Random job id in the format the client generates."""
    return str(uuid4())


# ============================================================================
# GENERATION PAYLOADS
# ============================================================================


@pytest.fixture
def single_request_payload() -> dict:
    """Single image request: pro 2K + upscaler = 15 + 1 = 16 diamonds."""
    return {
        "mode": "single",
        "prompt": "a red fox in snow",
        "model_tier": "pro",
        "resolution": "2K",
        "use_upscaler": True,
    }


@pytest.fixture
def group_request_payload() -> dict:
    """Group request with 2 characters: flash 1 + 2 characters = 3 diamonds."""
    return {
        "mode": "group",
        "prompt": "two friends at the beach",
        "characters": [
            {"description": "tall man in a blue shirt"},
            {"description": "girl with a straw hat"},
        ],
    }
