"""
Application Services (Use Cases)

Exports:
    - SubmitJobUseCase / SubmitJobResult: Admission Gateway
    - JobDispatchError / JobNotDispatchableError
    - PipelinePlanner: Stage planning
    - WorkerExecutor / WorkerRunResult: Pipeline execution and failure path
"""

from .pipeline_planner import PipelinePlanner
from .submit_job_use_case import (
    JobDispatchError,
    JobNotDispatchableError,
    SubmitJobResult,
    SubmitJobUseCase,
)
from .worker_executor import WorkerExecutor, WorkerRunResult, refund_description

__all__ = [
    "JobDispatchError",
    "JobNotDispatchableError",
    "PipelinePlanner",
    "SubmitJobResult",
    "SubmitJobUseCase",
    "WorkerExecutor",
    "WorkerRunResult",
    "refund_description",
]
