from __future__ import annotations

from functools import lru_cache

from celery import Celery

from avara.core.celery import create_celery_app


@lru_cache
def get_celery_client() -> Celery:
    """Return a lightweight Celery client for the API process.

    Used to enqueue tasks by name without importing task modules.
    """

    return create_celery_app(include_tasks=False)
