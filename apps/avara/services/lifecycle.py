"""Project lifecycle: one transition table for every state change.

States move ``draft -> research -> (research_ready) -> validation -> gtm_ready``.
``risk`` and ``roadmap`` are annotation labels only; nothing transitions into
them here, and events fired from them are rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Mapping

from avara.core.exceptions import ValidationError
from avara.core.utils import utcnow

logger = logging.getLogger(__name__)


class ProjectState(str, Enum):
    draft = "draft"
    research = "research"
    research_ready = "research_ready"
    validation = "validation"
    gtm_ready = "gtm_ready"
    risk = "risk"
    roadmap = "roadmap"


class ProjectEvent(str, Enum):
    submit_intake = "submit_intake"
    intake_ready = "intake_ready"
    intake_incomplete = "intake_incomplete"
    approve_experiments = "approve_experiments"
    approve_gtm = "approve_gtm"


class JobStatus(str, Enum):
    pending = "pending"
    done = "done"
    failed = "failed"
    superseded = "superseded"


@dataclass(frozen=True)
class GateFacts:
    """Document facts that guards may consult."""

    solution_validated: bool = False
    core_locked: bool = False

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any] | None) -> "GateFacts":
        doc = doc or {}
        summary = doc.get("summary") or {}
        core = doc.get("core") or {}
        return cls(
            solution_validated=(summary.get("solution") or {}).get("state") == "validated",
            core_locked=bool(core.get("locked")),
        )


Guard = Callable[[GateFacts, bool], str | None]


def _solution_validated(facts: GateFacts, _strict: bool) -> str | None:
    if not facts.solution_validated:
        return "Cannot proceed to GTM: solution not validated"
    return None


def _core_locked_if_required(facts: GateFacts, strict: bool) -> str | None:
    if strict and not facts.core_locked:
        return "Cannot approve experiments: core is not locked"
    return None


@dataclass(frozen=True)
class Transition:
    target: ProjectState
    guard: Guard | None = None


_S = ProjectState
_E = ProjectEvent

TRANSITIONS: dict[ProjectEvent, dict[ProjectState, Transition]] = {
    # Re-submitting an intake restarts research from wherever the project was.
    _E.submit_intake: {state: Transition(_S.research) for state in ProjectState},
    _E.intake_ready: {
        _S.draft: Transition(_S.research_ready),
        _S.research_ready: Transition(_S.research_ready),
    },
    _E.intake_incomplete: {
        _S.draft: Transition(_S.draft),
        _S.research_ready: Transition(_S.draft),
    },
    _E.approve_experiments: {
        _S.research: Transition(_S.validation, _core_locked_if_required),
        _S.research_ready: Transition(_S.validation, _core_locked_if_required),
        _S.validation: Transition(_S.validation, _core_locked_if_required),
        _S.gtm_ready: Transition(_S.gtm_ready),
    },
    _E.approve_gtm: {
        _S.research: Transition(_S.gtm_ready, _solution_validated),
        _S.research_ready: Transition(_S.gtm_ready, _solution_validated),
        _S.validation: Transition(_S.gtm_ready, _solution_validated),
        _S.gtm_ready: Transition(_S.gtm_ready, _solution_validated),
    },
}


def coerce_state(value: Any, default: ProjectState = ProjectState.draft) -> ProjectState:
    if isinstance(value, ProjectState):
        return value
    try:
        return ProjectState(str(value))
    except ValueError:
        return default


def can_transition(state: ProjectState | str, event: ProjectEvent) -> bool:
    return coerce_state(state) in TRANSITIONS[event]


def transition(
    state: ProjectState | str | None,
    event: ProjectEvent,
    facts: GateFacts | None = None,
    *,
    require_core_lock_for_experiments: bool = False,
) -> ProjectState:
    """Return the next state or raise ValidationError."""
    current = coerce_state(state)
    facts = facts or GateFacts()
    rule = TRANSITIONS[event].get(current)
    if rule is None:
        raise ValidationError(
            f"Cannot {event.value.replace('_', ' ')} from state '{current.value}'",
            details={"state": current.value, "event": event.value},
        )
    if rule.guard is not None:
        reason = rule.guard(facts, require_core_lock_for_experiments)
        if reason:
            raise ValidationError(reason, details={"state": current.value, "event": event.value})
    if rule.target is not current:
        logger.info("Lifecycle %s: %s -> %s", event.value, current.value, rule.target.value)
    return rule.target


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def solution_job_expired(job: Mapping[str, Any], timeout_seconds: float, now: datetime | None = None) -> bool:
    """True once a job has been pending longer than `timeout_seconds`.

    A job without a readable ``requestedAt`` cannot be bounded and counts as expired.
    """
    requested = _parse_time(job.get("requestedAt"))
    if requested is None:
        return True
    return (now or utcnow()) - requested > timedelta(seconds=timeout_seconds)


def pending_solution_job(
    doc: Mapping[str, Any] | None,
    *,
    timeout_seconds: float | None = None,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """The pending `core.solutionJob`, if any.

    With `timeout_seconds`, a job pending past that bound is treated as
    abandoned and not reported.
    """
    job = ((doc or {}).get("core") or {}).get("solutionJob")
    if not isinstance(job, Mapping) or job.get("status") != JobStatus.pending.value:
        return None
    if timeout_seconds is not None and solution_job_expired(job, timeout_seconds, now):
        return None
    return dict(job)


def check_lock_preconditions(doc: Mapping[str, Any], *, job_timeout_seconds: float | None = None) -> None:
    """Raise ValidationError unless the core triad can be locked."""
    core = doc.get("core") or {}
    missing = []
    if not ((core.get("problem") or {}).get("text") or "").strip():
        missing.append("problem")
    if not ((core.get("solution") or {}).get("text") or "").strip():
        missing.append("solution")
    primary_id = core.get("personaPrimaryId")
    persona_ids = {p.get("id") for p in doc.get("personas") or [] if isinstance(p, Mapping)}
    if not primary_id or primary_id not in persona_ids:
        missing.append("persona")
    if missing:
        raise ValidationError(
            "Problem, solution and primary persona are required to lock",
            details={"missing": missing},
        )
    if pending_solution_job(doc, timeout_seconds=job_timeout_seconds):
        raise ValidationError(
            "Solution is still being generated; try again once it is ready",
            details={"solutionJob": core.get("solutionJob")},
        )


__all__ = [
    "GateFacts",
    "JobStatus",
    "ProjectEvent",
    "ProjectState",
    "TRANSITIONS",
    "can_transition",
    "check_lock_preconditions",
    "coerce_state",
    "pending_solution_job",
    "solution_job_expired",
    "transition",
]
