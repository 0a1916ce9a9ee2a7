"""Celery task package.

Tasks are imported explicitly here so Celery's autodiscovery can find them via
`app.autodiscover_tasks(["avara"])` without the API process needing to import
task modules.

`TASK_REGISTRY` maps task names to the same callables for `InlineDispatcher`.
"""

from avara.services.dispatch import (
    CORE_BUSINESS_TASK,
    REFINE_SOLUTION_TASK,
    RISK_TASK,
    ROADMAP_TASK,
    TASKS_TASK,
)

from . import agents as agents  # noqa: F401
from . import research as research  # noqa: F401

TASK_REGISTRY = {
    REFINE_SOLUTION_TASK: research.refine_solution_task,
    CORE_BUSINESS_TASK: agents.generate_core_business_task,
    RISK_TASK: agents.analyse_risk_task,
    ROADMAP_TASK: agents.generate_roadmap_task,
    TASKS_TASK: agents.generate_tasks_task,
}
