from __future__ import annotations

import logging

from celery import shared_task

from avara.core.dependencies import (
    get_core_business_agent,
    get_risk_agent,
    get_roadmap_agent,
    get_task_agent,
)
from avara.core.exceptions import NotFoundError
from avara.services.dispatch import CORE_BUSINESS_TASK, RISK_TASK, ROADMAP_TASK, TASKS_TASK

logger = logging.getLogger(__name__)


def _missing(agent: str, project_id: str, exc: NotFoundError) -> dict:
    logger.warning("%s skipped for project=%s: %s", agent, project_id, exc.message)
    return {"ok": False, "reason": "not_found"}


@shared_task(name=CORE_BUSINESS_TASK)
def generate_core_business_task(*, user_id: str, project_id: str) -> dict:
    logger.info("Generating core business doc for project=%s", project_id)
    try:
        return get_core_business_agent().generate(user_id, project_id)
    except NotFoundError as exc:
        return _missing("Core business", project_id, exc)


@shared_task(name=RISK_TASK)
def analyse_risk_task(*, user_id: str, project_id: str, scope: str) -> dict:
    logger.info("Analysing %s risks for project=%s", scope, project_id)
    try:
        return get_risk_agent().analyse(user_id, project_id, scope)
    except NotFoundError as exc:
        return _missing("Risk", project_id, exc)


@shared_task(name=ROADMAP_TASK)
def generate_roadmap_task(*, user_id: str, project_id: str) -> dict:
    logger.info("Generating roadmap for project=%s", project_id)
    try:
        return get_roadmap_agent().generate(user_id, project_id)
    except NotFoundError as exc:
        return _missing("Roadmap", project_id, exc)


@shared_task(name=TASKS_TASK)
def generate_tasks_task(*, user_id: str, project_id: str) -> dict:
    logger.info("Generating task list for project=%s", project_id)
    try:
        return get_task_agent().generate(user_id, project_id)
    except NotFoundError as exc:
        return _missing("Tasks", project_id, exc)
