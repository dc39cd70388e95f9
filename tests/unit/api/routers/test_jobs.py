"""
Tests for the /api/jobs endpoints.

Covers:
- Job status by id (owner scoping, no-cache header)
- Invalid job ID format
- Recency fallback (/jobs/recent)
- Job history
- Re-dispatch of a PENDING job
"""

from uuid import uuid4

from fastapi import status

from pixelforge.application.services import JobDispatchError, JobNotDispatchableError


# ============================================================================
# GET /api/jobs/{job_id}
# ============================================================================


def test_get_job_status_success(client, mock_job_status_handler, sample_job_id):
    """
    Verifies:
    - Returns 200 OK with status, cost and result_ref
    - Query is scoped to the authenticated owner
    - Response is not cacheable (clients poll it)
    """
    response = client.get(f"/api/jobs/{sample_job_id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["job_id"] == sample_job_id
    assert data["status"] == "succeeded"
    assert data["result_ref"] == "https://cdn.example/fox.png"
    assert "no-cache" in response.headers["Cache-Control"]

    query = mock_job_status_handler.handle.call_args.args[0]
    assert query.job_id == sample_job_id
    assert query.owner_id == "user-1"


def test_get_job_status_invalid_uuid(client, mock_job_status_handler):
    response = client.get("/api/jobs/not-a-uuid")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    mock_job_status_handler.handle.assert_not_called()


# ============================================================================
# GET /api/jobs/recent
# ============================================================================


def test_get_recent_job(client, mock_recover_handler, sample_job_id):
    response = client.get("/api/jobs/recent", params={"since": "2026-10-18T12:00:00+00:00"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["job_id"] == sample_job_id
    query = mock_recover_handler.handle.call_args.args[0]
    assert query.owner_id == "user-1"
    assert query.since.isoformat() == "2026-10-18T12:00:00+00:00"


def test_get_recent_job_without_since_uses_default_window(client, mock_recover_handler):
    response = client.get("/api/jobs/recent")

    assert response.status_code == status.HTTP_200_OK
    assert mock_recover_handler.handle.call_args.args[0].since is None


def test_get_recent_job_not_found(client, mock_recover_handler):
    mock_recover_handler.handle.return_value = None

    response = client.get("/api/jobs/recent")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"]["code"] == "NO_RECENT_JOB"


# ============================================================================
# GET /api/jobs
# ============================================================================


def test_list_jobs(client, mock_list_jobs_handler, sample_job_id):
    response = client.get("/api/jobs", params={"limit": 5})

    assert response.status_code == status.HTTP_200_OK
    assert [job["job_id"] for job in response.json()] == [sample_job_id]
    query = mock_list_jobs_handler.handle.call_args.args[0]
    assert query.owner_id == "user-1"
    assert query.limit == 5


def test_list_jobs_rejects_out_of_range_limit(client):
    response = client.get("/api/jobs", params={"limit": 0})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


# ============================================================================
# POST /api/jobs/{job_id}/dispatch
# ============================================================================


def test_dispatch_job(client, mock_submit_use_case, sample_job_id):
    response = client.post(f"/api/jobs/{sample_job_id}/dispatch")

    assert response.status_code == status.HTTP_202_ACCEPTED
    assert response.json()["duplicate"] is True
    mock_submit_use_case.redispatch.assert_awaited_once_with("user-1", sample_job_id)


def test_dispatch_terminal_job_conflicts(client, mock_submit_use_case, sample_job_id):
    mock_submit_use_case.redispatch.side_effect = JobNotDispatchableError(
        sample_job_id, "job is succeeded"
    )

    response = client.post(f"/api/jobs/{sample_job_id}/dispatch")

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["code"] == "JOB_NOT_DISPATCHABLE"


def test_dispatch_with_queue_down(client, mock_submit_use_case):
    job_id = str(uuid4())
    mock_submit_use_case.redispatch.side_effect = JobDispatchError(
        job_id, ConnectionError("broker down")
    )

    response = client.post(f"/api/jobs/{job_id}/dispatch")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["detail"]["details"]["job_id"] == job_id
