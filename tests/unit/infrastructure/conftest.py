"""
Pytest Configuration for Infrastructure Tests.

Redis is replaced by a MagicMock whose pipeline() returns the mock itself,
so immediate-mode reads and queued writes of a WATCH/MULTI body land on
the same object and can be asserted directly.
"""

from unittest.mock import MagicMock

import pytest

from pixelforge.domain.generation.entities.job import GenerationJob


@pytest.fixture
def mock_redis():
    """Create mock Redis client for testing."""
    redis_mock = MagicMock()
    redis_mock.ping.return_value = True
    redis_mock.pipeline.return_value = redis_mock  # Pipeline returns itself
    redis_mock.execute.return_value = [1, 1, 1]
    return redis_mock


@pytest.fixture
def pending_job(owner_id) -> GenerationJob:
    return GenerationJob(owner_id=owner_id, payload={"prompt": "fox"}, cost=3)
