"""
Celery Tasks

Responsibility:
    Asynchronous task definitions for long-running operations.

Contains:
    - celery_app.py - Celery configuration
    - generation_tasks.py - Generation job execution

Does NOT contain:
    - Business logic (delegates to WorkerExecutor)
"""

from .celery_app import celery_app, health_check
from .generation_tasks import enqueue_generation_job, run_generation_job

__all__ = ["celery_app", "health_check", "enqueue_generation_job", "run_generation_job"]
