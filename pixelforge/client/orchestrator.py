"""
Generation Client - client-side orchestration of one generation

Responsibility:
    Submits a generation request and resolves it to a terminal outcome,
    racing the HTTP path (submit, then poll the job) against the push
    channel. Recovers from transport faults by job id, never by
    re-submitting.

Architecture Notes:
    - Async (httpx.AsyncClient); push subscription is optional
    - The job id is generated here and sent as client_request_id, so it is
      known even when the submit response is lost
    - 402 and other 4xx answers are surfaced directly; they are clean
      rejections with nothing charged
    - cancel() only stops waiting locally: the job keeps running and is
      refunded by the worker if it fails

Flow:
    generate(request)
        1. job_id = uuid4(); subscribe to the job topic
        2. race: push terminal event | submit -> poll | cancel()
        3. transport fault on submit -> wait recovery_delay ->
           GET /api/jobs/{job_id}: found -> continue; not found ->
           RecoveryAmbiguityError
        4. terminal outcome -> refresh balance
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import httpx
from pydantic import BaseModel

from pixelforge.application.models import JobStatus
from pixelforge.application.ports.push_channel import (
    PushSubscriberProtocol,
    PushSubscriptionProtocol,
)
from pixelforge.domain.shared.exceptions import (
    InsufficientFundsError,
    RecoveryAmbiguityError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_RECOVERY_DELAY = 2.0
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_POLLS = 100
DEFAULT_RECOVERY_ATTEMPTS = 3

SOURCE_PUSH = "push"
SOURCE_POLL = "poll"
SOURCE_RECOVERY = "recovery"
SOURCE_CANCELLED = "cancelled"
SOURCE_TIMEOUT = "timeout"


class ApiRequestError(RuntimeError):
    """Raised when the API answers with a clean error status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(message)


class GenerationOutcome(BaseModel):
    """
    Result of one generate() call.

    Attributes:
        job_id: Job id (equals the client_request_id sent on submit)
        status: succeeded or failed; pending when cancelled or the wait ran out
        result_ref: Artifact reference when succeeded
        failure_reason: Reason when failed (the charge was refunded)
        balance: Balance refreshed after the outcome, None if unavailable
        source: Which path resolved the job (push, poll, recovery, ...)
    """

    job_id: str
    status: JobStatus
    result_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    balance: Optional[int] = None
    source: str = SOURCE_POLL

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED


class _JobNotFound(Exception):
    pass


class GenerationClient:
    """
    Client Orchestrator.

    Example:
        >>> async with GenerationClient("http://localhost:8000", token) as client:
        ...     outcome = await client.generate({"prompt": "a red fox in snow"})
        >>> outcome.status
        <JobStatus.SUCCEEDED: 'succeeded'>
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        subscriber: Optional[PushSubscriberProtocol] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = 30.0,
        recovery_delay: float = DEFAULT_RECOVERY_DELAY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        recovery_attempts: int = DEFAULT_RECOVERY_ATTEMPTS,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=request_timeout
        )
        self._client.headers["Authorization"] = f"Bearer {token}"
        self._subscriber = subscriber
        self.recovery_delay = recovery_delay
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.recovery_attempts = recovery_attempts

        self.active_job_id: Optional[str] = None
        self.balance: Optional[int] = None
        self._cancel_event: Optional[asyncio.Event] = None

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def generate(self, request: dict[str, Any]) -> GenerationOutcome:
        """
        Submit a request and wait for its terminal outcome.

        Raises:
            InsufficientFundsError: 402, nothing charged
            StoreUnavailableError: 503 at admission, nothing charged
            ApiRequestError: Other clean rejection (4xx)
            RecoveryAmbiguityError: Submit hit a transport fault and the job
                could not be found afterwards
        """
        job_id = str(uuid4())
        self.active_job_id = job_id
        self._cancel_event = asyncio.Event()

        subscription = await self._subscribe(job_id)
        tasks: dict[asyncio.Task, str] = {
            asyncio.create_task(self._submit_and_wait(job_id, request)): SOURCE_POLL,
            asyncio.create_task(self._cancel_event.wait()): SOURCE_CANCELLED,
        }
        if subscription is not None:
            tasks[asyncio.create_task(self._wait_for_push(job_id, subscription))] = SOURCE_PUSH

        try:
            outcome = await self._race(job_id, tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if subscription is not None:
                await subscription.close()
            self._reset()

        if outcome.status.is_terminal:
            outcome.balance = await self._refresh_balance_quietly()
        logger.info(f"Job {job_id} resolved: {outcome.status.value} via {outcome.source}")
        return outcome

    def cancel(self) -> None:
        """Stop waiting for the active job. Never contacts the server."""
        if self._cancel_event is not None:
            logger.info(f"Stopped waiting for job {self.active_job_id}")
            self._cancel_event.set()

    async def get_job(self, job_id: str) -> Optional[GenerationOutcome]:
        """Recovery query by job id; None when the server does not know the job."""
        try:
            return self._outcome_from_status(await self._fetch_status(job_id), SOURCE_POLL)
        except _JobNotFound:
            return None

    async def recover_recent(
        self, since: Optional[datetime] = None
    ) -> Optional[GenerationOutcome]:
        """
        Legacy recovery: newest SUCCEEDED job of this owner since `since`
        (server default: two minutes ago). None when there is none.
        """
        params = {"since": since.isoformat()} if since else None
        response = await self._client.get("/api/jobs/recent", params=params)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_error(response)
        return self._outcome_from_status(response.json(), SOURCE_RECOVERY)

    async def refresh_balance(self) -> int:
        response = await self._client.get("/api/accounts/me")
        self._raise_for_error(response)
        self.balance = int(response.json()["balance"])
        return self.balance

    # ========================================================================
    # RACE
    # ========================================================================

    async def _race(
        self, job_id: str, tasks: dict[asyncio.Task, str]
    ) -> GenerationOutcome:
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                source = tasks[task]
                if source == SOURCE_CANCELLED:
                    return GenerationOutcome(
                        job_id=job_id, status=JobStatus.PENDING, source=SOURCE_CANCELLED
                    )
                if source == SOURCE_PUSH and task.exception() is not None:
                    # Push failures only lose the race
                    logger.warning(
                        f"Push channel for {job_id} failed, polling only: {task.exception()!r}"
                    )
                    continue
                outcome = task.result()
                if outcome is not None:
                    return outcome
        return GenerationOutcome(job_id=job_id, status=JobStatus.PENDING, source=SOURCE_TIMEOUT)

    async def _subscribe(self, job_id: str) -> Optional[PushSubscriptionProtocol]:
        if self._subscriber is None:
            return None
        try:
            return await self._subscriber.subscribe(job_id)
        except Exception as e:
            logger.warning(f"Push subscription for {job_id} failed, polling only: {e}")
            return None

    async def _wait_for_push(
        self, job_id: str, subscription: PushSubscriptionProtocol
    ) -> Optional[GenerationOutcome]:
        event = await subscription.wait_for_terminal(
            timeout=self.poll_interval * self.max_polls
        )
        if event is None:
            logger.info(f"Push channel for {job_id} gave no terminal event")
            return None
        status = JobStatus(event["type"])
        return GenerationOutcome(
            job_id=job_id,
            status=status,
            result_ref=event.get("result_ref"),
            failure_reason=event.get("failure_reason"),
            source=SOURCE_PUSH,
        )

    # ========================================================================
    # HTTP PATH
    # ========================================================================

    async def _submit_and_wait(
        self, job_id: str, request: dict[str, Any]
    ) -> GenerationOutcome:
        body = dict(request)
        body["client_request_id"] = job_id
        try:
            response = await self._client.post("/api/generations", json=body)
        except httpx.TransportError as e:
            logger.warning(f"Submit of {job_id} hit a transport fault: {e!r}")
            return await self._recover(job_id, e)

        if response.status_code >= 500 and self._error_code(response) not in (
            "STORE_UNAVAILABLE",
            "DISPATCH_FAILED",
        ):
            # Outcome of the admission is unknown
            logger.warning(f"Submit of {job_id} answered {response.status_code}")
            return await self._recover(
                job_id, ApiRequestError("Server error", response.status_code)
            )

        if self._error_code(response) == "DISPATCH_FAILED":
            await self._redispatch(job_id)
        else:
            self._raise_for_error(response)
            self.balance = response.json().get("balance_after_debit", self.balance)

        return await self._poll_until_terminal(job_id)

    async def _recover(self, job_id: str, original_error: Exception) -> GenerationOutcome:
        """
        Recovery Query by job id after an ambiguous submit.

        Raises:
            RecoveryAmbiguityError: Job still unknown after all attempts
        """
        for attempt in range(self.recovery_attempts):
            await asyncio.sleep(self.recovery_delay)
            try:
                status = await self._fetch_status(job_id)
            except _JobNotFound:
                logger.info(
                    f"Recovery {attempt + 1}/{self.recovery_attempts}: job {job_id} not found"
                )
                continue
            except (httpx.TransportError, StoreUnavailableError, ApiRequestError) as e:
                if not self._is_transient(e):
                    raise
                logger.warning(f"Recovery {attempt + 1} for {job_id} failed: {e!r}")
                continue

            outcome = self._outcome_from_status(status, SOURCE_RECOVERY)
            if outcome.status.is_terminal:
                return outcome
            logger.info(f"Recovered job {job_id} is still pending, waiting")
            return await self._poll_until_terminal(job_id)

        raise RecoveryAmbiguityError(job_id, original_error)

    async def _redispatch(self, job_id: str) -> None:
        logger.warning(f"Job {job_id} was charged but not queued, re-dispatching")
        response = await self._client.post(f"/api/jobs/{job_id}/dispatch")
        # 409: already running or finished
        if response.status_code != httpx.codes.CONFLICT:
            self._raise_for_error(response)

    async def _poll_until_terminal(self, job_id: str) -> GenerationOutcome:
        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            try:
                outcome = self._outcome_from_status(
                    await self._fetch_status(job_id), SOURCE_POLL
                )
            except _JobNotFound:
                logger.debug(f"Poll of {job_id}: not visible yet")
                continue
            except (httpx.TransportError, StoreUnavailableError, ApiRequestError) as e:
                if not self._is_transient(e):
                    raise
                logger.warning(f"Poll of {job_id} failed, still waiting: {e!r}")
                continue
            if outcome.status.is_terminal:
                return outcome
        logger.warning(f"Job {job_id} still pending after {self.max_polls} polls")
        return GenerationOutcome(job_id=job_id, status=JobStatus.PENDING, source=SOURCE_TIMEOUT)

    async def _fetch_status(self, job_id: str) -> dict[str, Any]:
        response = await self._client.get(f"/api/jobs/{job_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            raise _JobNotFound(job_id)
        self._raise_for_error(response)
        return response.json()

    async def _refresh_balance_quietly(self) -> Optional[int]:
        try:
            return await self.refresh_balance()
        except (httpx.HTTPError, ApiRequestError) as e:
            logger.warning(f"Balance refresh failed: {e!r}")
            return self.balance

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _reset(self) -> None:
        self.active_job_id = None
        self._cancel_event = None

    @staticmethod
    def _is_transient(error: Exception) -> bool:
        """Transport faults and 5xx answers while reading a job: keep waiting."""
        if isinstance(error, ApiRequestError):
            return error.status_code >= 500
        return isinstance(error, (httpx.TransportError, StoreUnavailableError))

    @staticmethod
    def _outcome_from_status(status: dict[str, Any], source: str) -> GenerationOutcome:
        return GenerationOutcome(
            job_id=status["job_id"],
            status=JobStatus(status["status"]),
            result_ref=status.get("result_ref"),
            failure_reason=status.get("failure_reason"),
            source=source,
        )

    @staticmethod
    def _error_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        if not isinstance(body, dict):
            return {}
        # HTTPException wraps the ErrorResponse in "detail"
        detail = body.get("detail", body)
        return detail if isinstance(detail, dict) else {"message": str(detail)}

    def _error_code(self, response: httpx.Response) -> Optional[str]:
        if response.is_success:
            return None
        return self._error_body(response).get("code")

    def _raise_for_error(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        error = self._error_body(response)
        message = error.get("message") or response.text or response.reason_phrase
        details = error.get("details") or {}

        if response.status_code == httpx.codes.PAYMENT_REQUIRED:
            raise InsufficientFundsError(
                owner_id="",
                required=int(details.get("required", 0)),
                available=int(details.get("available", 0)),
                message=message,
            )
        if error.get("code") == "STORE_UNAVAILABLE":
            raise StoreUnavailableError(message)
        raise ApiRequestError(
            message, response.status_code, code=error.get("code"), details=details
        )
