from __future__ import annotations

import logging

from celery import shared_task

from avara.core.dependencies import get_research_service
from avara.services.dispatch import REFINE_SOLUTION_TASK

logger = logging.getLogger(__name__)


@shared_task(name=REFINE_SOLUTION_TASK)
def refine_solution_task(*, user_id: str, project_id: str, job_id: str) -> dict:
    """Regenerate the solution for a pending `core.solutionJob`."""
    svc = get_research_service()
    logger.info("Running solution job %s for project=%s", job_id, project_id)
    return svc.refine_solution(user_id, project_id, job_id)
