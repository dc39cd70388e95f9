"""
Celery application initialization.

Broker and result backend come from the environment. Generation tasks are
acknowledged late and rejected when a worker dies, so a job is redelivered
rather than lost (at-least-once); the Worker Executor's guards make the
redelivery harmless.

Architecture Note:
- Part of Application Layer (orchestration)
- Uses environment variables for configuration
- No business logic - pure infrastructure setup
"""

import os
from datetime import datetime

from celery import Celery
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

celery_app = Celery(
    "pixelforge",
    broker=os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0"),
    backend=os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1"),
)

celery_app.conf.update(
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    result_expires=3600,  # Results expire after 1 hour
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,  # One long-running job per process at a time
    # Redis broker redelivers unacked messages after this timeout
    broker_transport_options={
        "visibility_timeout": int(os.environ.get("CELERY_VISIBILITY_TIMEOUT", "3600"))
    },
)

celery_app.autodiscover_tasks(["pixelforge.application.tasks"])


@celery_app.task(name="health_check")
def health_check() -> dict:
    """
    Simple health check task to verify the broker and result backend.

    Returns:
        dict: status, message, timestamp and worker hostname
    """
    return {
        "status": "ok",
        "message": "Celery worker is healthy",
        "timestamp": datetime.now().isoformat(),
        "worker": (
            celery_app.current_task.request.hostname
            if celery_app.current_task
            else "unknown"
        ),
    }
