from __future__ import annotations

from typing import Any

from avara.core.utils import clamp_int
from avara.services.agents.base import DownstreamAgent
from avara.services.normalize import as_int, as_text, one_of
from avara.services.synthesis import SynthesisMode

MILESTONE_STATUSES = ("todo", "in_progress", "done")
PRIORITIES = ("low", "medium", "high")
DEFAULT_HORIZON_MONTHS = 6


def _milestones(raw: Any, phase_id: str) -> list[dict[str, Any]]:
    out = []
    for idx, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        out.append(
            {
                "id": as_text(item.get("id"), f"{phase_id}_m{idx + 1}"),
                "title": as_text(item.get("title"), f"Milestone {idx + 1}"),
                "description": as_text(item.get("description")),
                "metric": as_text(item.get("metric")),
                "dueOffsetWeeks": max(0, as_int(item.get("dueOffsetWeeks"), 0)),
                "status": one_of(item.get("status"), MILESTONE_STATUSES, "todo"),
                "priority": one_of(item.get("priority"), PRIORITIES, "medium"),
            }
        )
    return out


def normalize_phases(raw: Any) -> list[dict[str, Any]]:
    phases = []
    for idx, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        phase_id = as_text(item.get("id"), f"phase_{idx + 1}")
        phases.append(
            {
                "id": phase_id,
                "name": as_text(item.get("name"), f"Phase {idx + 1}"),
                "order": as_int(item.get("order"), idx + 1),
                "durationWeeks": max(1, as_int(item.get("durationWeeks"), 4)),
                "objective": as_text(item.get("objective")),
                "keyResult": as_text(item.get("keyResult")),
                "milestones": _milestones(item.get("milestones"), phase_id),
            }
        )
    return sorted(phases, key=lambda p: p["order"])


class RoadmapAgent(DownstreamAgent):
    name = "roadmap"
    doc_key = "roadmap"
    mode = SynthesisMode.roadmap

    def empty(self) -> dict[str, Any]:
        return {"horizonMonths": DEFAULT_HORIZON_MONTHS, "overarchingGoal": "", "summary": "", "phases": []}

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {
            "horizonMonths": clamp_int(as_int(raw.get("horizonMonths"), DEFAULT_HORIZON_MONTHS), lo=1, hi=36),
            "overarchingGoal": as_text(raw.get("overarchingGoal")),
            "summary": as_text(raw.get("summary")),
            "phases": normalize_phases(raw.get("phases")),
        }
