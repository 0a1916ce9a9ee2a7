from __future__ import annotations

from celery import Celery
from kombu import Queue

from avara.core.settings import settings

TASK_MODULES: tuple[str, ...] = (
    "avara.tasks.research",
    "avara.tasks.agents",
)


def create_celery_app(*, include_tasks: bool = True) -> Celery:
    """Create a configured Celery app.

    `include_tasks=False` creates a lightweight client suitable for the API
    process (enqueue only) without importing task modules.
    """

    celery_app = Celery(
        "avara",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=list(TASK_MODULES) if include_tasks else [],
    )
    celery_app.conf.update(
        accept_content=["json"],
        enable_utc=True,
        result_serializer="json",
        task_serializer="json",
        timezone="UTC",
        task_track_started=True,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        task_default_queue="default",
        task_queues=(
            Queue("default"),
            Queue("agents"),
        ),
        task_routes={
            "avara.tasks.research.*": {"queue": "default"},
            "avara.tasks.agents.*": {"queue": "agents"},
        },
    )

    if include_tasks:
        celery_app.autodiscover_tasks(["avara"])
        # Workers started from other entrypoints still need the tasks registered.
        import avara.tasks.agents  # noqa: F401
        import avara.tasks.research  # noqa: F401

    return celery_app
