"""Celery background tasks."""
from taxportal.tasks.celery_app import celery_app

__all__ = ["celery_app"]
