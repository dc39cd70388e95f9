"""
Common fixtures for API unit tests.

Provides shared test utilities:
- FastAPI TestClient with authentication and handlers overridden
- Mock use case / query handlers (AsyncMock handle/execute)
- Sample results
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pixelforge.api import dependencies
from pixelforge.api.main import app
from pixelforge.application.models import JobStatus
from pixelforge.application.queries import AccountResult, JobStatusResult
from pixelforge.application.services import SubmitJobResult

API_OWNER = "user-1"


@pytest.fixture
def sample_submit_result(sample_job_id):
    return SubmitJobResult(job_id=sample_job_id, cost=16, balance_after_debit=4)


@pytest.fixture
def sample_status_result(sample_job_id):
    return JobStatusResult(
        job_id=sample_job_id,
        status=JobStatus.SUCCEEDED,
        cost=16,
        progress="Done",
        result_ref="https://cdn.example/fox.png",
        created_at="2026-10-18T12:00:00+00:00",
        updated_at="2026-10-18T12:01:00+00:00",
    )


@pytest.fixture
def mock_submit_use_case(sample_submit_result):
    """Mock for SubmitJobUseCase."""
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=sample_submit_result)
    mock.redispatch = AsyncMock(
        return_value=sample_submit_result.model_copy(update={"duplicate": True})
    )
    return mock


@pytest.fixture
def mock_job_status_handler(sample_status_result):
    mock = MagicMock()
    mock.handle = AsyncMock(return_value=sample_status_result)
    return mock


@pytest.fixture
def mock_recover_handler(sample_status_result):
    mock = MagicMock()
    mock.handle = AsyncMock(return_value=sample_status_result)
    return mock


@pytest.fixture
def mock_list_jobs_handler(sample_status_result):
    mock = MagicMock()
    mock.handle = AsyncMock(return_value=[sample_status_result])
    return mock


@pytest.fixture
def mock_account_handler():
    mock = MagicMock()
    mock.handle = AsyncMock(return_value=AccountResult(owner_id=API_OWNER, balance=7, xp=20))
    return mock


@pytest.fixture
def client(
    mock_submit_use_case,
    mock_job_status_handler,
    mock_recover_handler,
    mock_list_jobs_handler,
    mock_account_handler,
):
    """
    FastAPI TestClient for testing endpoints.

    The caller is authenticated as "user-1"; every Application Layer
    dependency is replaced with a mock so no Redis is touched.
    """
    app.dependency_overrides.update(
        {
            dependencies.get_current_owner: lambda: API_OWNER,
            dependencies.get_submit_job_use_case: lambda: mock_submit_use_case,
            dependencies.get_job_status_query_handler: lambda: mock_job_status_handler,
            dependencies.get_recover_job_query_handler: lambda: mock_recover_handler,
            dependencies.get_list_jobs_query_handler: lambda: mock_list_jobs_handler,
            dependencies.get_account_query_handler: lambda: mock_account_handler,
        }
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """TestClient without any overrides (real authentication dependencies)."""
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
