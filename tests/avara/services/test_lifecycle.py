from datetime import datetime, timezone

import pytest
from avara.core.exceptions import ValidationError
from avara.services.lifecycle import (
    GateFacts,
    ProjectEvent,
    ProjectState,
    can_transition,
    check_lock_preconditions,
    coerce_state,
    pending_solution_job,
    solution_job_expired,
    transition,
)


def _locked_doc(**core):
    return {
        "core": {
            "problem": {"text": "Students lack affordable tutoring", "state": "draft"},
            "solution": {"text": "Peer tutoring marketplace", "state": "draft"},
            "personaPrimaryId": "p1",
            **core,
        },
        "personas": [{"id": "p1"}],
    }


def test_submit_intake_restarts_research_from_any_state():
    for state in ProjectState:
        assert transition(state, ProjectEvent.submit_intake) is ProjectState.research


def test_gtm_requires_validated_solution():
    with pytest.raises(ValidationError, match="solution not validated"):
        transition("validation", ProjectEvent.approve_gtm, GateFacts(solution_validated=False))
    assert transition("validation", ProjectEvent.approve_gtm, GateFacts(solution_validated=True)) is ProjectState.gtm_ready


def test_experiments_lock_requirement_is_configurable():
    facts = GateFacts(core_locked=False)
    assert transition("research", ProjectEvent.approve_experiments, facts) is ProjectState.validation
    with pytest.raises(ValidationError, match="core is not locked"):
        transition("research", ProjectEvent.approve_experiments, facts, require_core_lock_for_experiments=True)


def test_reapproval_never_regresses():
    assert transition("gtm_ready", ProjectEvent.approve_experiments) is ProjectState.gtm_ready


def test_events_from_unknown_states_are_rejected():
    assert not can_transition("validation", ProjectEvent.intake_ready)
    with pytest.raises(ValidationError) as info:
        transition("risk", ProjectEvent.approve_gtm, GateFacts(solution_validated=True))
    assert info.value.details == {"state": "risk", "event": "approve_gtm"}


def test_coerce_state_defaults_to_draft():
    assert coerce_state(None) is ProjectState.draft
    assert coerce_state("bogus") is ProjectState.draft


def test_gate_facts_read_summary_and_core():
    facts = GateFacts.from_doc({"summary": {"solution": {"state": "validated"}}, "core": {"locked": True}})
    assert facts == GateFacts(solution_validated=True, core_locked=True)


def test_lock_preconditions():
    check_lock_preconditions(_locked_doc())

    with pytest.raises(ValidationError) as info:
        check_lock_preconditions(_locked_doc(solution={"text": "  "}, personaPrimaryId="ghost"))
    assert info.value.details == {"missing": ["solution", "persona"]}

    with pytest.raises(ValidationError, match="still being generated"):
        check_lock_preconditions(_locked_doc(solutionJob={"id": "job_1", "status": "pending"}))


def test_pending_job_past_timeout_no_longer_blocks_lock():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    fresh = {"id": "job_1", "status": "pending", "requestedAt": "2026-01-01T11:55:00+00:00"}
    stale = {"id": "job_1", "status": "pending", "requestedAt": "2026-01-01T11:00:00+00:00"}

    assert solution_job_expired(fresh, 600, now) is False
    assert solution_job_expired(stale, 600, now) is True
    assert solution_job_expired({"id": "job_1", "status": "pending"}, 600, now) is True

    assert pending_solution_job({"core": {"solutionJob": fresh}}, timeout_seconds=600, now=now) == fresh
    assert pending_solution_job({"core": {"solutionJob": stale}}, timeout_seconds=600, now=now) is None
    assert pending_solution_job({"core": {"solutionJob": stale}}) == stale

    check_lock_preconditions(_locked_doc(solutionJob=stale), job_timeout_seconds=600)
    with pytest.raises(ValidationError, match="still being generated"):
        check_lock_preconditions(
            _locked_doc(solutionJob={**fresh, "requestedAt": datetime.now(timezone.utc).isoformat()}),
            job_timeout_seconds=600,
        )
