from __future__ import annotations

from typing import Any

from avara.services.agents.base import DownstreamAgent
from avara.services.normalize import as_int, as_text, one_of
from avara.services.synthesis import SynthesisMode

STATUSES = ("todo", "in_progress", "done")
PRIORITIES = ("low", "medium", "high")


def normalize_tasks(raw: Any) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        due = item.get("dueInDays")
        out.append(
            {
                "id": as_text(item.get("id"), f"task_{idx + 1}"),
                "title": as_text(item.get("title"), "Task"),
                "description": as_text(item.get("description")),
                "category": as_text(item.get("category"), "other"),
                "status": one_of(item.get("status"), STATUSES, "todo"),
                "priority": one_of(item.get("priority"), PRIORITIES, "medium"),
                "dueInDays": None if due is None else max(0, as_int(due, 0)),
            }
        )
    return out


class TaskAgent(DownstreamAgent):
    """Short-horizon task list for the founding team."""

    name = "tasks"
    doc_key = "tasks"
    mode = SynthesisMode.tasks

    def empty(self) -> dict[str, Any]:
        return {"tasks": []}

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {"tasks": normalize_tasks(raw.get("tasks"))}

    def present(self, doc: dict[str, Any]) -> Any:
        return doc.get("tasks") or []
