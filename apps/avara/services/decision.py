"""Gate decision: which validation stages a project still needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

PROBLEM_VALIDATION_EVIDENCE: tuple[str, ...] = (
    "market_size_signals",
    "search_trends",
    "customer_complaints",
    "competitor_positioning",
)
SOLUTION_VALIDATION_EVIDENCE: tuple[str, ...] = (
    "benchmarks",
    "switching_costs",
    "distribution_access",
    "pricing_bands",
)
RESEARCH_PACK_EVIDENCE: tuple[str, ...] = ("macro", "micro", "competitors", "channels", "pricing")


@dataclass(frozen=True)
class PlanStage:
    stage: str
    evidence: tuple[str, ...]

    def as_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "evidence": list(self.evidence)}


@dataclass(frozen=True)
class GateDecision:
    need_problem: bool
    need_solution: bool
    plan: tuple[PlanStage, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "needProblem": self.need_problem,
            "needSolution": self.need_solution,
            "plan": [stage.as_dict() for stage in self.plan],
        }

    def gate_flags(self) -> dict[str, bool]:
        """The derived half of `ProjectContext.gates`."""
        return {
            "problemValidationNeeded": self.need_problem,
            "solutionValidationNeeded": self.need_solution,
        }


def decide_validation(intake: Mapping[str, Any] | None) -> GateDecision:
    """Pure function of the intake snapshot.

    A solution can only need validation when one exists, and the research
    pack stage is always last.
    """
    intake = intake or {}
    need_problem = not bool(intake.get("problemValidated"))
    need_solution = bool(intake.get("solutionExists")) and not bool(intake.get("solutionValidated"))

    plan: list[PlanStage] = []
    if need_problem:
        plan.append(PlanStage("problem_validation", PROBLEM_VALIDATION_EVIDENCE))
    if need_solution:
        plan.append(PlanStage("solution_validation", SOLUTION_VALIDATION_EVIDENCE))
    plan.append(PlanStage("research_pack", RESEARCH_PACK_EVIDENCE))

    return GateDecision(need_problem=need_problem, need_solution=need_solution, plan=tuple(plan))


__all__ = ["GateDecision", "PlanStage", "decide_validation"]
