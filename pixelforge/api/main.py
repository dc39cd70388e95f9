"""
FastAPI Application Setup

Main entry point for the PixelForge API application.

Responsibility:
    - FastAPI app initialization
    - Router registration (generations, jobs, accounts, admin)
    - CORS middleware configuration
    - Global exception handlers
    - Request logging middleware
    - Health check endpoint

Architecture Notes:
    - Part of API Layer (Presentation)
    - Entry point for HTTP server (uvicorn)
    - Centralizes cross-cutting concerns (logging, CORS, error handling)
    - No business logic - pure HTTP orchestration

Does NOT contain:
    - Business logic (delegated to Application Layer)
    - Celery configuration (application/tasks/celery_app.py)
"""

import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pixelforge import __version__
from pixelforge.api.routers import accounts, admin, generations, jobs
from pixelforge.api.schemas.common import ErrorResponse
from pixelforge.application.queries import JobNotFoundException
from pixelforge.domain.shared.exceptions import (
    DomainException,
    InsufficientFundsError,
    InvalidGenerationRequestError,
    JobAlreadyExistsError,
    StoreUnavailableError,
)
from pixelforge.infrastructure.persistence.redis import close_connections
from pixelforge.infrastructure.persistence.redis import health_check as redis_health_check

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class HealthCheckResponse(BaseModel):
    """
    Health check response model.

    Attributes:
        status: "ok" when Redis answers, "degraded" otherwise
        version: API version
        timestamp: Unix timestamp of health check
        redis: Redis PING result
    """

    status: str = "ok"
    version: str = __version__
    timestamp: float
    redis: bool = True


# ============================================================================
# MIDDLEWARE
# ============================================================================


async def request_logging_middleware(request: Request, call_next):
    """
    Request logging middleware.

    Logs all incoming requests with method, path, status code, and duration.

    Logging Format:
        INFO: "Incoming request: POST /api/generations"
        INFO: "Request completed: POST /api/generations - 202 - 0.031s"
    """
    logger.info(f"Incoming request: {request.method} {request.url.path}")

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} - "
        f"{response.status_code} - {duration:.3f}s"
    )
    return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def domain_exception_handler(request: Request, exc: DomainException):
    """
    Global exception handler for domain layer exceptions.

    Mapping:
        - InsufficientFundsError -> 402 Payment Required
        - StoreUnavailableError -> 503 Service Unavailable (nothing charged)
        - InvalidGenerationRequestError -> 400 Bad Request (with error list)
        - JobAlreadyExistsError -> 409 Conflict
        - Other DomainException -> 400 Bad Request

    Examples:
        >>> raise InsufficientFundsError("user-1", required=3, available=1)
        >>> # Returns: 402 {"code": "INSUFFICIENT_FUNDS", "message": "...",
        >>> #               "details": {"required": 3, "available": 1}}
    """
    details = {"exception_type": exc.__class__.__name__}

    if isinstance(exc, InsufficientFundsError):
        status_code = status.HTTP_402_PAYMENT_REQUIRED
        error_code = "INSUFFICIENT_FUNDS"
        details.update(required=exc.required, available=exc.available)
    elif isinstance(exc, StoreUnavailableError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        error_code = "STORE_UNAVAILABLE"
    elif isinstance(exc, InvalidGenerationRequestError):
        status_code = status.HTTP_400_BAD_REQUEST
        error_code = "INVALID_GENERATION_REQUEST"
        details["errors"] = exc.errors
    elif isinstance(exc, JobAlreadyExistsError):
        status_code = status.HTTP_409_CONFLICT
        error_code = "JOB_ALREADY_EXISTS"
        details["job_id"] = exc.job_id
    else:
        status_code = status.HTTP_400_BAD_REQUEST
        error_code = exc.__class__.__name__.replace("Error", "").upper()

    error_response = ErrorResponse(code=error_code, message=str(exc), details=details)

    logger.warning(
        f"Domain exception: {exc.__class__.__name__} - {exc} - "
        f"Request: {request.method} {request.url.path}"
    )

    return JSONResponse(status_code=status_code, content=error_response.model_dump())


async def job_not_found_exception_handler(request: Request, exc: JobNotFoundException):
    """Convert JobNotFoundException to 404 Not Found."""
    error_response = ErrorResponse(
        code="JOB_NOT_FOUND",
        message=str(exc),
        details={"job_id": str(exc.job_id)},
    )

    logger.warning(
        f"Job not found: {exc.job_id} - Request: {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_response.model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected exceptions.

    Catches all unhandled exceptions and converts to 500 Internal Server Error.
    Logs full stack trace for debugging.
    """
    error_response = ErrorResponse(
        code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        details={"type": exc.__class__.__name__},
    )

    logger.error(
        f"Unexpected error: {exc.__class__.__name__} - {exc} - "
        f"Request: {request.method} {request.url.path}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(),
    )


# ============================================================================
# APP FACTORY
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the shared Redis pool on shutdown."""
    yield
    close_connections()


def create_app() -> FastAPI:
    """
    FastAPI application factory.

    Creates and configures FastAPI app with all middleware, routers,
    and exception handlers.

    Routers:
        /api/generations, /api/jobs, /api/accounts, /api/admin/api-keys

    Usage:
        >>> app = create_app()
        >>> # uvicorn pixelforge.api.main:app --reload
    """
    app = FastAPI(
        title="PixelForge API",
        version=__version__,
        description=(
            "Paid asynchronous image generation. Submit a request, get a job id, "
            "and receive the result by push event or by polling the job."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Production: restrict to specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(request_logging_middleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(JobNotFoundException, job_not_found_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(generations.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")
    app.include_router(accounts.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        status_code=status.HTTP_200_OK,
        summary="Health check endpoint",
        description="Health check for monitoring and load balancers",
        tags=["health"],
    )
    async def health_check() -> HealthCheckResponse:
        """
        Examples:
            >>> curl http://localhost:8000/health
            {"status": "ok", "version": "0.1.0", "timestamp": 1704976800.123, "redis": true}
        """
        redis_ok = redis_health_check()
        return HealthCheckResponse(
            status="ok" if redis_ok else "degraded",
            timestamp=time.time(),
            redis=redis_ok,
        )

    logger.info("FastAPI application created successfully")
    logger.info(
        "Registered routers: /api/generations, /api/jobs, /api/accounts, /api/admin/api-keys"
    )

    return app


# ============================================================================
# APP INSTANCE (for uvicorn)
# ============================================================================

app = create_app()
