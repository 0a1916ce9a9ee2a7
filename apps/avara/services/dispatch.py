"""Background task dispatch.

Producers enqueue by task name only, so the API process never imports
worker code. `CeleryDispatcher` sends through the broker; `InlineDispatcher`
runs registered callables in-process (local dev, tests).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Protocol

from celery import Celery

logger = logging.getLogger(__name__)

REFINE_SOLUTION_TASK = "avara.tasks.research.refine_solution"
CORE_BUSINESS_TASK = "avara.tasks.agents.generate_core_business"
RISK_TASK = "avara.tasks.agents.analyse_risk"
ROADMAP_TASK = "avara.tasks.agents.generate_roadmap"
TASKS_TASK = "avara.tasks.agents.generate_tasks"


class TaskDispatcher(Protocol):
    def dispatch(self, task_name: str, **kwargs: Any) -> str | None:
        """Enqueue `task_name`; returns a task id when the backend has one."""
        ...


class CeleryDispatcher:
    def __init__(self, client: Celery | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Celery:
        if self._client is None:
            from avara.core.celery_client import get_celery_client

            self._client = get_celery_client()
        return self._client

    def dispatch(self, task_name: str, **kwargs: Any) -> str | None:
        result = self.client.send_task(task_name, kwargs=kwargs)
        logger.info("Enqueued %s task_id=%s", task_name, result.id)
        return result.id


class InlineDispatcher:
    """Runs tasks synchronously; failures are logged, never raised."""

    def __init__(self, registry: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._registry: Mapping[str, Callable[..., Any]] | None = registry

    @property
    def registry(self) -> Mapping[str, Callable[..., Any]]:
        if self._registry is None:
            from avara.tasks import TASK_REGISTRY

            self._registry = TASK_REGISTRY
        return self._registry

    def dispatch(self, task_name: str, **kwargs: Any) -> str | None:
        func = self.registry.get(task_name)
        if func is None:
            raise KeyError(f"Unknown task: {task_name}")
        try:
            func(**kwargs)
        except Exception:
            logger.exception("Inline task %s failed", task_name)
        return None


__all__ = [
    "CORE_BUSINESS_TASK",
    "CeleryDispatcher",
    "InlineDispatcher",
    "REFINE_SOLUTION_TASK",
    "RISK_TASK",
    "ROADMAP_TASK",
    "TASKS_TASK",
    "TaskDispatcher",
]
