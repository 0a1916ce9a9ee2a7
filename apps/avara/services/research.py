"""Research orchestrator.

Owns the intake, the core triad (problem, solution, primary persona), the
lock, the lifecycle gates and the downstream fan-out for a project.

Writes follow one rule: check every precondition first, then mutate. A
rejected call leaves the stored documents untouched. Doc and context
writes go through `DocumentStore.save`, so concurrent edits surface as
409 conflicts instead of silently overwriting each other.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from avara.core.exceptions import ConflictError, NotFoundError, ValidationError
from avara.core.utils import new_id, utcnow_iso
from avara.services.decision import decide_validation
from avara.services.dispatch import REFINE_SOLUTION_TASK, TaskDispatcher
from avara.services.insights import InsightsService
from avara.services.intake_quality import IntakeQuality, assess_intake_quality
from avara.services.lifecycle import (
    GateFacts,
    JobStatus,
    ProjectEvent,
    ProjectState,
    check_lock_preconditions,
    coerce_state,
    pending_solution_job,
    transition,
)
from avara.services.merge import merge_sections
from avara.services.normalize import (
    normalize_competitors,
    normalize_personas,
    normalize_research_doc,
)
from avara.services.store import SYSTEM_FIELDS, DocumentStore
from avara.services.synthesis import SynthesisMode, Synthesizer
from avara.services.triggers import DownstreamTrigger

logger = logging.getLogger(__name__)

CORE_FIELDS = ("problem", "solution", "persona", "persona_primary")

PROBLEM_PLACEHOLDER = "Avara is generating a solution based on your validated problem..."
PERSONA_PLACEHOLDER = "Avara is refining the solution for this persona..."

DEFAULT_PERSONA = {
    "id": "persona_default",
    "type": "primary",
    "title": "Target User",
    "description": "A general user facing the problem described.",
    "confidence": 1.0,
}
DEFAULT_EXPERIMENT = {
    "id": "exp_default",
    "title": "Validate core assumptions",
    "hypothesis": "The primary persona experiences the stated problem.",
    "metric": "At least 10 qualitative confirmations.",
    "status": "pending",
}
GTM_NEXT_STEP = "Execute GTM plan & prepare Risk Agent handoff"
GTM_ETA_DAYS = 60


def _prepare_personas(
    synthesized: list[dict[str, Any]],
    enriched: list[dict[str, Any]],
    path_type: str,
) -> list[dict[str, Any]]:
    """Pick the persona source, then give every persona a stable shape.

    Resource-first intakes trust the insights personas; problem-first ones
    only fall back to them. There is always at least one persona.
    """
    personas = synthesized
    if enriched and (path_type == "resource" or not personas):
        personas = normalize_personas(enriched)
    if not personas:
        personas = [dict(DEFAULT_PERSONA)]

    out = []
    for idx, persona in enumerate(personas):
        confidence = persona.get("confidence")
        out.append(
            {
                **persona,
                "id": persona.get("id") or f"persona_{idx}",
                "title": persona.get("title") or f"Persona {idx + 1}",
                "description": persona.get("description") or "",
                "confidence": 0.9 if confidence is None else confidence,
                "type": persona.get("type") or ("primary" if idx == 0 else "secondary"),
            }
        )
    return out


def _primary_persona(doc: Mapping[str, Any]) -> dict[str, Any] | None:
    personas = [p for p in doc.get("personas") or [] if isinstance(p, Mapping)]
    primary_id = (doc.get("core") or {}).get("personaPrimaryId")
    for persona in personas:
        if persona.get("id") == primary_id:
            return dict(persona)
    return dict(personas[0]) if personas else None


def _has_content(value: Any) -> bool:
    if isinstance(value, Mapping):
        return any(_has_content(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return bool(value)
    return value not in (None, "")


def _merge_analysis(existing: Mapping[str, Any] | None, incoming: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(existing or {})
    for key, value in incoming.items():
        if _has_content(value):
            merged[key] = value
    return merged


def _merge_summary(
    existing: Mapping[str, Any] | None,
    incoming: Mapping[str, Any],
    raw: Any,
    *,
    next_step: str | None = None,
    eta_days: int | None = None,
) -> dict[str, Any]:
    """Fold a downstream summary into the doc's.

    The problem and solution entries belong to the core triad and are never
    taken from a downstream pass. Defaults apply only when the model left
    the value out.
    """
    raw_summary = raw.get("summary") if isinstance(raw, Mapping) else None
    raw_summary = raw_summary if isinstance(raw_summary, Mapping) else {}
    merged = dict(existing or {})

    if raw_summary.get("nextStep"):
        merged["nextStep"] = incoming["nextStep"]
    elif next_step:
        merged["nextStep"] = next_step
    if raw_summary.get("etaDays") is not None:
        merged["etaDays"] = incoming["etaDays"]
    elif eta_days is not None:
        merged["etaDays"] = eta_days
    if _has_content(incoming.get("gtm")):
        merged["gtm"] = incoming["gtm"]
    return merged


@dataclass
class ResearchService:
    projects: DocumentStore
    contexts: DocumentStore
    docs: DocumentStore
    synthesizer: Synthesizer
    insights: InsightsService
    dispatcher: TaskDispatcher
    trigger: DownstreamTrigger
    require_core_lock_for_experiments: bool = False
    solution_job_max_write_attempts: int = 3
    solution_job_timeout_seconds: int = 900

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    def _load(self, user_id: str, project_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        doc = self.docs.get(user_id, project_id)
        if doc is None:
            raise NotFoundError("Research document not found", details={"projectId": project_id})
        ctx = self.contexts.get(user_id, project_id)
        if ctx is None:
            raise NotFoundError("Project context not found", details={"projectId": project_id})
        return doc, ctx

    def _commit(
        self,
        doc: dict[str, Any],
        ctx: dict[str, Any],
        *,
        original: Mapping[str, Any],
        job_id: str | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Save the research doc, then its context.

        If the context write fails the doc is restored to `original`, so the
        pair never disagrees, and the context error is re-raised.
        """
        saved = self.docs.save(doc)
        try:
            return saved, self.contexts.save(ctx)
        except Exception:
            self._rollback_doc(original, saved, job_id)
            raise

    def _rollback_doc(self, original: Mapping[str, Any], saved: Mapping[str, Any], job_id: str | None) -> None:
        user_id, project_id = saved["userId"], saved["projectId"]
        restored = {**copy.deepcopy(dict(original)), "version": saved.get("version")}
        added = [k for k in saved if k not in original and k not in SYSTEM_FIELDS]
        try:
            self.docs.save(restored, unset=added)
            logger.warning("Context write failed; research doc rolled back project=%s", project_id)
        except ConflictError:
            # The doc moved on; only the new job can still be retired.
            logger.warning("Context write failed and doc rollback conflicted project=%s", project_id)
            if job_id:
                self._fail_solution_job(user_id, project_id, job_id, "context write failed")

    def _assess_reliability(self, intake: Mapping[str, Any], doc: dict[str, Any]) -> None:
        reliability = self.insights.assess_reliability(intake, doc)
        if reliability is not None:
            doc.setdefault("meta", {})["reliability"] = reliability

    # ------------------------------------------------------------------ #
    # Projects
    # ------------------------------------------------------------------ #

    def create_project(
        self,
        user_id: str,
        project_id: str,
        *,
        name: str,
        industry: str | None = None,
        region: str | None = None,
    ) -> dict[str, Any]:
        fields: dict[str, Any] = {"name": name}
        if industry:
            fields["industry"] = industry.strip()
        if region:
            fields["region"] = region.strip()
        project = self.projects.upsert(
            user_id,
            project_id,
            fields,
            on_insert={"status": ProjectState.draft.value, "industry": "", "region": ""},
        )
        logger.info("Project upserted project=%s", project_id)
        return project

    def list_projects(self, user_id: str) -> list[dict[str, Any]]:
        return self.projects.list_for_user(user_id)

    def _set_project_status(self, user_id: str, project_id: str, state: ProjectState) -> None:
        self.projects.update_fields(user_id, project_id, {"status": state.value})

    # ------------------------------------------------------------------ #
    # Intake
    # ------------------------------------------------------------------ #

    def start_research(self, user_id: str, intake_in: Mapping[str, Any]) -> dict[str, Any]:
        """Core pass: persist the intake, decide gates and synthesize the triad."""
        intake = dict(intake_in)
        project_id = intake.pop("projectId")
        path_type = intake.get("pathType") or "problem"
        logger.info("Starting research project=%s pathType=%s", project_id, path_type)

        enrichment = self.insights.enrich_intake(intake)
        quality = IntakeQuality(is_weak=False)
        if path_type == "problem":
            quality = assess_intake_quality(intake, self.synthesizer)
        gate = decide_validation(intake)

        existing_ctx = self.contexts.get(user_id, project_id)
        state = transition(
            (existing_ctx or {}).get("state", ProjectState.draft),
            ProjectEvent.submit_intake,
        )
        ctx = self.contexts.upsert(
            user_id,
            project_id,
            {
                "intake": {"projectId": project_id, **intake},
                "state": state.value,
                "gates": {
                    **gate.gate_flags(),
                    "userApprovedExperiments": False,
                    "userApprovedProceedToGTM": False,
                },
            },
            on_insert={"meta": {}},
            unset=["draft"],
        )

        raw = self.synthesizer.synthesize(
            SynthesisMode.core,
            {"intake": intake, "sources": [], "spa": enrichment["spa"], "gtms": False},
        )
        body = normalize_research_doc(raw, project_id=project_id)
        logger.info(
            "Core pass project=%s sections=%d experiments=%d",
            project_id,
            len(body["sections"]),
            len(body["experiments"]),
        )

        meta = body["meta"]
        meta["spa"] = enrichment["spa"] or meta.get("spa")
        meta["clarifyingQuestions"] = (
            quality.clarifying_questions or meta.get("clarifyingQuestions") or enrichment["clarifyingQuestions"]
        )
        meta["needMoreInput"] = quality.is_weak

        body["personas"] = _prepare_personas(body["personas"], enrichment["personas"], path_type)
        primary = next((p for p in body["personas"] if p["type"] == "primary"), body["personas"][0])

        problem_text = intake.get("problem") or body["summary"]["problem"]["notes"]
        solution_text = intake.get("solution") or body["summary"]["solution"]["notes"]
        body["core"] = {
            "problem": {
                "text": problem_text,
                "state": "validated" if intake.get("problemValidated") else "draft",
            },
            "solution": {
                "text": solution_text,
                "state": "validated" if intake.get("solutionValidated") else "draft",
            },
            "personaPrimaryId": primary["id"],
            "locked": False,
            "dirtyDownstream": True,
        }
        summary = body["summary"]
        summary["problem"] = {
            "notes": problem_text,
            "state": "validated" if intake.get("problemValidated") else summary["problem"]["state"],
        }
        summary["solution"] = {
            "notes": solution_text,
            "state": "validated" if intake.get("solutionValidated") else summary["solution"]["state"],
        }

        if enrichment["competitors"] and not body["competitors"]:
            body["competitors"] = normalize_competitors(enrichment["competitors"])

        self._assess_reliability(intake, body)

        doc = self.docs.upsert(
            user_id,
            project_id,
            {**body, "pathType": path_type, "intake": intake, "state": state.value},
        )

        project_fields = {"status": state.value, "industry": intake.get("industry") or "", "name": intake.get("name")}
        if intake.get("region"):
            project_fields["region"] = intake["region"]
        self.projects.upsert(user_id, project_id, project_fields, on_insert={"region": ""})

        return {"gate": gate.as_dict(), "doc": doc, "context": ctx}

    def save_draft(
        self,
        user_id: str,
        project_id: str,
        step: int,
        answers: Mapping[str, Any],
    ) -> dict[str, Any]:
        ctx = self.contexts.upsert(
            user_id,
            project_id,
            {"draft": {"step": step, "answers": dict(answers)}},
            on_insert={"state": ProjectState.draft.value, "intake": {}, "gates": {}, "meta": {}},
        )

        card: dict[str, Any] = {}
        for key in ("industry", "region"):
            value = answers.get(key)
            if isinstance(value, str) and value.strip():
                card[key] = value.strip()
        if card:
            self.projects.update_fields(user_id, project_id, card)

        return {"ok": True, "draft": ctx.get("draft")}

    def get_draft(self, user_id: str, project_id: str) -> dict[str, Any] | None:
        """The saved wizard draft, or None when there is nothing to resume."""
        ctx = self.contexts.get(user_id, project_id)
        draft = (ctx or {}).get("draft")
        if not draft:
            return None
        return {"step": draft.get("step", 0), "answers": draft.get("answers") or {}}

    def get_research(self, user_id: str, project_id: str) -> dict[str, Any]:
        doc = self.docs.get(user_id, project_id)
        if doc is None:
            raise NotFoundError("Research document not found", details={"projectId": project_id})
        return {"doc": doc, "context": self.contexts.get(user_id, project_id)}

    # ------------------------------------------------------------------ #
    # Core triad
    # ------------------------------------------------------------------ #

    def update_core(
        self,
        user_id: str,
        project_id: str,
        field: str,
        *,
        text: str | None = None,
        persona_id: str | None = None,
        validate: bool = False,
    ) -> dict[str, Any]:
        if field not in CORE_FIELDS:
            raise ValidationError(f"Unknown core field: {field}")
        text = (text or "").strip()
        if field in ("problem", "solution", "persona") and not text:
            raise ValidationError(f"Text required for {field} update")
        if field == "persona_primary" and not persona_id:
            raise ValidationError("Persona ID required for selection")

        doc, ctx = self._load(user_id, project_id)
        original = copy.deepcopy(doc)
        core = doc.setdefault("core", {})
        summary = doc.setdefault("summary", {})
        intake = ctx.setdefault("intake", {})
        personas = [p for p in doc.get("personas") or [] if isinstance(p, dict)]
        doc["personas"] = personas

        target: dict[str, Any] | None = None
        if field == "persona":
            target = (
                next((p for p in personas if persona_id and p.get("id") == persona_id), None)
                or next((p for p in personas if p.get("id") == core.get("personaPrimaryId")), None)
                or (personas[0] if personas else None)
            )
            if target is None:
                raise ValidationError("No persona available to update.")
        if field == "persona_primary" and not any(p.get("id") == persona_id for p in personas):
            raise NotFoundError("Persona not found", details={"personaId": persona_id})

        job: dict[str, Any] | None = None
        if core.get("locked"):
            core["dirtyDownstream"] = True

        if field == "problem":
            core["problem"] = {"text": text, "state": "validated" if validate else "draft"}
            summary["problem"] = {"notes": text, "state": "validated" if validate else "unvalidated"}
            intake["problem"] = text
            intake["problemValidated"] = bool(validate)
            if validate:
                solution = core.setdefault("solution", {})
                if not (solution.get("text") or "").strip():
                    solution["text"] = PROBLEM_PLACEHOLDER
                solution["state"] = "draft"
                summary.setdefault("solution", {})["state"] = "unvalidated"
                job = self._new_job(core, "problem_validated")

        elif field == "solution":
            core["solution"] = {"text": text, "state": "validated" if validate else "draft"}
            summary["solution"] = {"notes": text, "state": "validated" if validate else "unvalidated"}
            intake["solution"] = text
            intake["solutionValidated"] = bool(validate)
            intake["solutionExists"] = True
            pending = pending_solution_job(doc)
            if pending:
                # A manual edit wins over an in-flight regeneration.
                core["solutionJob"] = {**pending, "status": JobStatus.superseded.value, "finishedAt": utcnow_iso()}
                logger.info("Solution job %s superseded by manual edit project=%s", pending["id"], project_id)

        elif field == "persona" and target is not None:
            target["description"] = text
            target["updatedAt"] = utcnow_iso()
            target["updatedBy"] = user_id
            core["personaPrimaryId"] = target["id"]
            core["dirtyDownstream"] = True

        else:  # persona_primary
            core["personaPrimaryId"] = persona_id
            core["dirtyDownstream"] = True
            core["solution"] = {"text": PERSONA_PLACEHOLDER, "state": "draft"}
            summary["solution"] = {"notes": PERSONA_PLACEHOLDER, "state": "unvalidated"}
            intake["solutionValidated"] = False
            job = self._new_job(core, "persona_changed")

        gate = decide_validation(intake)
        ctx.setdefault("gates", {}).update(gate.gate_flags())

        doc, ctx = self._commit(doc, ctx, original=original, job_id=job["id"] if job else None)
        logger.info("Core %s updated project=%s validate=%s", field, project_id, validate)

        if job is not None:
            doc = self._enqueue_solution_job(user_id, project_id, job["id"]) or doc
        if field == "problem" and validate:
            self.trigger.analyse_risk(user_id, project_id, "problem")

        return {"ok": True, "doc": doc, "context": ctx}

    @staticmethod
    def _new_job(core: dict[str, Any], reason: str) -> dict[str, Any]:
        job = {
            "id": new_id("job"),
            "status": JobStatus.pending.value,
            "reason": reason,
            "requestedAt": utcnow_iso(),
        }
        core["solutionJob"] = job
        return job

    def _enqueue_solution_job(self, user_id: str, project_id: str, job_id: str) -> dict[str, Any] | None:
        """Hand the job to the dispatcher and return the freshest doc.

        A dispatch failure marks the job failed instead of failing the request.
        """
        try:
            self.dispatcher.dispatch(REFINE_SOLUTION_TASK, user_id=user_id, project_id=project_id, job_id=job_id)
        except Exception as exc:
            logger.warning("Could not enqueue solution job %s project=%s: %s", job_id, project_id, exc)
            self._fail_solution_job(user_id, project_id, job_id, f"dispatch failed: {exc}")
        return self.docs.get(user_id, project_id)

    def _fail_solution_job(self, user_id: str, project_id: str, job_id: str, error: str) -> bool:
        """Mark `job_id` failed if it is still the pending job."""
        return self.docs.update_fields(
            user_id,
            project_id,
            {
                "core.solutionJob.status": JobStatus.failed.value,
                "core.solutionJob.error": error,
                "core.solutionJob.finishedAt": utcnow_iso(),
            },
            conditions={"core.solutionJob.id": job_id, "core.solutionJob.status": JobStatus.pending.value},
        )

    def refine_solution(self, user_id: str, project_id: str, job_id: str) -> dict[str, Any]:
        """Background half of problem validation / persona reselection.

        Re-reads the doc before writing and only writes while `job_id` is
        still the pending job, so intervening edits are never clobbered.
        A crash marks the job failed before the error propagates.
        """
        try:
            return self._run_solution_job(user_id, project_id, job_id)
        except Exception as exc:
            logger.exception("Solution job %s crashed project=%s", job_id, project_id)
            self._fail_solution_job(user_id, project_id, job_id, f"job crashed: {exc}")
            raise

    def _run_solution_job(self, user_id: str, project_id: str, job_id: str) -> dict[str, Any]:
        doc = self.docs.get(user_id, project_id)
        if doc is None:
            logger.warning("Solution job %s: research doc missing project=%s", job_id, project_id)
            return {"ok": False, "reason": "not_found"}
        job = pending_solution_job(doc)
        if job is None or job.get("id") != job_id:
            logger.info("Solution job %s no longer current project=%s; skipping", job_id, project_id)
            return {"ok": False, "reason": "stale_job"}

        ctx = self.contexts.get(user_id, project_id) or {}
        core = doc.get("core") or {}
        raw = self.synthesizer.synthesize(
            SynthesisMode.refine_solution,
            {
                "intake": ctx.get("intake") or doc.get("intake") or {},
                "sources": [],
                "spa": (doc.get("meta") or {}).get("spa"),
                "core": {
                    "problem": core.get("problem"),
                    "solution": core.get("solution"),
                    "primaryPersona": _primary_persona(doc),
                },
            },
        )
        refined = normalize_research_doc(raw, project_id=project_id)
        notes = refined["summary"]["solution"]["notes"].strip()

        for attempt in range(1, self.solution_job_max_write_attempts + 1):
            fresh = self.docs.get(user_id, project_id)
            current = pending_solution_job(fresh)
            if fresh is None or current is None or current.get("id") != job_id:
                logger.info("Solution job %s superseded before write project=%s", job_id, project_id)
                return {"ok": False, "reason": "stale_job"}

            fresh_core = fresh.setdefault("core", {})
            finished = {**current, "finishedAt": utcnow_iso()}
            if notes:
                fresh_core["solution"] = {"text": notes, "state": "draft"}
                fresh.setdefault("summary", {})["solution"] = {"notes": notes, "state": "unvalidated"}
                finished["status"] = JobStatus.done.value
            else:
                finished["status"] = JobStatus.failed.value
                finished["error"] = "Synthesis returned no solution"
            fresh_core["solutionJob"] = finished
            if refined["sections"]:
                fresh["sections"] = merge_sections(fresh.get("sections"), refined["sections"])

            try:
                self.docs.save(fresh, conditions={"core.solutionJob.id": job_id})
            except ConflictError:
                logger.info("Solution job %s write conflict (attempt %d) project=%s", job_id, attempt, project_id)
                continue
            logger.info("Solution job %s %s project=%s", job_id, finished["status"], project_id)
            return {"ok": True, "status": finished["status"]}

        logger.warning("Solution job %s gave up after %d conflicting writes", job_id, self.solution_job_max_write_attempts)
        return {"ok": False, "reason": "conflict"}

    def lock_core(self, user_id: str, project_id: str) -> dict[str, Any]:
        """Freeze the triad and run the downstream pass (PEST, SWOT, experiments...)."""
        doc, ctx = self._load(user_id, project_id)
        original = copy.deepcopy(doc)
        check_lock_preconditions(doc, job_timeout_seconds=self.solution_job_timeout_seconds)

        core = doc["core"]
        abandoned = pending_solution_job(doc)
        if abandoned:
            logger.warning("Solution job %s timed out; locking without it project=%s", abandoned["id"], project_id)
            core["solutionJob"] = {
                **abandoned,
                "status": JobStatus.failed.value,
                "error": "timed out",
                "finishedAt": utcnow_iso(),
            }
        intake = ctx.setdefault("intake", {})
        raw = self.synthesizer.synthesize(
            SynthesisMode.downstream,
            {
                "intake": intake,
                "sources": [],
                "spa": (doc.get("meta") or {}).get("spa"),
                "gtms": False,
                "core": {
                    "problem": core.get("problem"),
                    "solution": core.get("solution"),
                    "primaryPersona": _primary_persona(doc),
                },
                "region": intake.get("region") or None,
            },
        )
        downstream = normalize_research_doc(raw, project_id=project_id)

        core["locked"] = True
        core["problem"]["state"] = "validated"
        summary = doc.setdefault("summary", {})
        summary.setdefault("problem", {})["state"] = "validated"
        intake["problemValidated"] = True

        doc["experiments"] = downstream["experiments"] or doc.get("experiments") or [dict(DEFAULT_EXPERIMENT)]
        if downstream["competitors"]:
            doc["competitors"] = downstream["competitors"]
        if downstream["timeline"]:
            doc["timeline"] = downstream["timeline"]
        doc["sections"] = merge_sections(doc.get("sections"), downstream["sections"])
        doc["analysis"] = _merge_analysis(doc.get("analysis"), downstream["analysis"])
        doc["summary"] = _merge_summary(summary, downstream["summary"], raw)
        if downstream["meta"].get("experimentHints"):
            doc.setdefault("meta", {})["experimentHints"] = downstream["meta"]["experimentHints"]
        core["dirtyDownstream"] = False

        gate = decide_validation(intake)
        ctx.setdefault("gates", {}).update(gate.gate_flags())

        self._assess_reliability(intake, doc)
        doc, ctx = self._commit(doc, ctx, original=original)
        logger.info("Core locked project=%s experiments=%d", project_id, len(doc.get("experiments") or []))

        self.trigger.analyse_risk(user_id, project_id, "core")
        return {"ok": True, "doc": doc, "context": ctx}

    # ------------------------------------------------------------------ #
    # Gates
    # ------------------------------------------------------------------ #

    def advance_gates(
        self,
        user_id: str,
        project_id: str,
        *,
        approve_experiments: bool | None = None,
        approve_gtm: bool | None = None,
    ) -> dict[str, Any]:
        doc, ctx = self._load(user_id, project_id)
        original = copy.deepcopy(doc)
        facts = GateFacts.from_doc(doc)

        # Resolve every transition before touching anything.
        state = coerce_state(ctx.get("state"))
        after_experiments = state
        if approve_experiments:
            after_experiments = transition(
                state,
                ProjectEvent.approve_experiments,
                facts,
                require_core_lock_for_experiments=self.require_core_lock_for_experiments,
            )
        final = after_experiments
        if approve_gtm:
            final = transition(after_experiments, ProjectEvent.approve_gtm, facts)

        gates = ctx.setdefault("gates", {})
        triggers: dict[str, str] = {}

        if approve_experiments:
            gates["userApprovedExperiments"] = True
        if approve_gtm:
            gates["userApprovedProceedToGTM"] = True
            self._apply_gtm_pass(doc, ctx)
        if not (approve_experiments or approve_gtm):
            return {"ok": True, "doc": doc, "context": ctx, "triggers": triggers}

        ctx["state"] = final.value
        doc["state"] = final.value
        doc, ctx = self._commit(doc, ctx, original=original)
        self._set_project_status(user_id, project_id, final)
        logger.info("Gates advanced project=%s state=%s", project_id, final.value)

        if approve_gtm:
            triggers = self.trigger.fan_out(user_id, project_id)
        return {"ok": True, "doc": doc, "context": ctx, "triggers": triggers}

    def _apply_gtm_pass(self, doc: dict[str, Any], ctx: dict[str, Any]) -> None:
        intake = ctx.get("intake") or {}
        core = doc.get("core") or {}
        raw = self.synthesizer.synthesize(
            SynthesisMode.downstream,
            {
                "intake": intake,
                "sources": [],
                "spa": (doc.get("meta") or {}).get("spa"),
                "gtms": True,
                "core": {
                    "problem": core.get("problem"),
                    "solution": core.get("solution"),
                    "primaryPersona": _primary_persona(doc),
                },
                "region": intake.get("region") or None,
            },
        )
        gtm = normalize_research_doc(raw, project_id=doc.get("projectId"))
        logger.info("GTM pass project=%s sections=%d", doc.get("projectId"), len(gtm["sections"]))

        doc["sections"] = merge_sections(doc.get("sections"), gtm["sections"])
        if gtm["timeline"]:
            doc["timeline"] = gtm["timeline"]
        if gtm["competitors"]:
            doc["competitors"] = gtm["competitors"]
        doc["analysis"] = _merge_analysis(doc.get("analysis"), gtm["analysis"])
        doc["summary"] = _merge_summary(
            doc.get("summary"),
            gtm["summary"],
            raw,
            next_step=GTM_NEXT_STEP,
            eta_days=GTM_ETA_DAYS,
        )
        self._assess_reliability(intake, doc)

    # ------------------------------------------------------------------ #
    # Clarification
    # ------------------------------------------------------------------ #

    def submit_clarification(self, user_id: str, project_id: str, answer: str) -> dict[str, Any]:
        trimmed = (answer or "").strip()
        if len(trimmed) < 5:
            raise ValidationError("Answer is required and must be at least 5 characters.")

        doc = self.docs.get(user_id, project_id)
        if doc is None:
            raise NotFoundError("Research document not found", details={"projectId": project_id})
        ctx = self.contexts.get(user_id, project_id)
        original = copy.deepcopy(doc)

        meta = doc.setdefault("meta", {})
        meta["needMoreInput"] = False
        meta.setdefault("clarificationAnswers", []).append({"answer": trimmed, "date": utcnow_iso()})

        if ctx is None:
            return {"ok": True, "doc": self.docs.save(doc), "context": None}

        intake = ctx.setdefault("intake", {})
        if intake.get("pathType") == "problem":
            current = (intake.get("resourceDescription") or "").strip()
            if not current:
                intake["resourceDescription"] = trimmed
            elif trimmed not in current:
                intake["resourceDescription"] = f"{current}\nClarification: {trimmed}"
        doc, ctx = self._commit(doc, ctx, original=original)
        return {"ok": True, "doc": doc, "context": ctx}


__all__ = [
    "DEFAULT_EXPERIMENT",
    "DEFAULT_PERSONA",
    "PERSONA_PLACEHOLDER",
    "PROBLEM_PLACEHOLDER",
    "ResearchService",
]
