from __future__ import annotations

import logging
from dataclasses import dataclass

from avara.core.exceptions import ValidationError
from avara.services.dispatch import (
    CORE_BUSINESS_TASK,
    RISK_TASK,
    ROADMAP_TASK,
    TASKS_TASK,
    TaskDispatcher,
)

logger = logging.getLogger(__name__)

RISK_SCOPES: tuple[str, ...] = ("problem", "core", "gtm")


@dataclass
class DownstreamTrigger:
    """Fire-and-forget calls into the downstream agents.

    Triggers carry only the project key; each agent re-reads the research
    doc itself, so they must be issued after the upstream write commits.
    """

    dispatcher: TaskDispatcher

    def _fire(self, agent: str, task_name: str, **kwargs: object) -> str:
        try:
            self.dispatcher.dispatch(task_name, **kwargs)
        except Exception as exc:
            logger.warning("Trigger %s failed for project=%s: %s", agent, kwargs.get("project_id"), exc)
            return "failed"
        return "queued"

    def analyse_risk(self, user_id: str, project_id: str, scope: str) -> str:
        if scope not in RISK_SCOPES:
            raise ValidationError(f"Unknown risk scope: {scope}", details={"scope": scope})
        return self._fire("risk", RISK_TASK, user_id=user_id, project_id=project_id, scope=scope)

    def fan_out(self, user_id: str, project_id: str) -> dict[str, str]:
        """Enqueue every downstream agent after GTM approval."""
        results = {
            "risk": self.analyse_risk(user_id, project_id, "gtm"),
            "core": self._fire("core", CORE_BUSINESS_TASK, user_id=user_id, project_id=project_id),
            "roadmap": self._fire("roadmap", ROADMAP_TASK, user_id=user_id, project_id=project_id),
            "task": self._fire("task", TASKS_TASK, user_id=user_id, project_id=project_id),
        }
        logger.info("Downstream fan-out project=%s results=%s", project_id, results)
        return results


__all__ = ["DownstreamTrigger", "RISK_SCOPES"]
