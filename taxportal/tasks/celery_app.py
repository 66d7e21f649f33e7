"""
Celery app configuration for background work.

Tasks are acknowledged late and re-queued when a worker dies, so delivery is
at-least-once and every task must be safe to run twice.

Usage:
    celery -A taxportal.tasks.celery_app worker --loglevel=info
"""

import logging
from typing import Optional

from celery import Celery, Task
from celery.signals import worker_ready, worker_shutdown

from taxportal.config import settings

logger = logging.getLogger(__name__)


def create_celery_app(
    broker_url: Optional[str] = None,
    result_backend: Optional[str] = None,
) -> Celery:
    """
    Create and configure the Celery application.

    Args:
        broker_url: Broker URL (defaults to CELERY_BROKER_URL)
        result_backend: Result backend URL (defaults to CELERY_RESULT_BACKEND)

    Returns:
        Configured Celery application
    """
    app = Celery(
        "taxportal",
        broker=broker_url or settings.CELERY_BROKER_URL,
        backend=result_backend or settings.CELERY_RESULT_BACKEND,
        include=["taxportal.tasks.portal_tasks"],
    )

    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        result_accept_content=["json"],
        # Acknowledge after the task finishes so a lost worker means a redelivery
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        task_time_limit=120,
        task_soft_time_limit=90,
        result_expires=3600,
        timezone="UTC",
        enable_utc=True,
    )
    return app


class TaskBase(Task):
    """Base task: log failures and retries."""

    abstract = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(
            f"Task {self.name}[{task_id}] retrying (attempt {self.request.retries + 1}): {exc}"
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app = create_celery_app()
celery_app.Task = TaskBase


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    logger.info(f"Celery worker ready: {sender}")


@worker_shutdown.connect
def on_worker_shutdown(sender, **kwargs):
    logger.info(f"Celery worker shutting down: {sender}")
