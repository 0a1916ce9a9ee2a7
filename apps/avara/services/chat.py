"""Conversational patching of research docs and intakes.

A message goes to the chat synthesis mode, which answers with a reply and
a partial patch. The patch is applied through the merge schemas, so the
model can only touch the fields those schemas expose.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from avara.core.exceptions import NotFoundError, ValidationError
from avara.services.lifecycle import ProjectEvent, ProjectState, can_transition, transition
from avara.services.merge import apply_intake_patch, apply_research_patch
from avara.services.store import DocumentStore
from avara.services.synthesis import SynthesisMode, Synthesizer

logger = logging.getLogger(__name__)

RESEARCH_DEFAULT_REPLY = "Got it. I've reviewed your research and updated what needed to change."
INTAKE_DEFAULT_REPLY = (
    "Got it. I've updated your intake and will keep asking focused questions until we're ready for research."
)
RESEARCH_OFFLINE_REPLY = "LLM disabled; I just added your note to the summary."
INTAKE_OFFLINE_REPLY = (
    "LLM is disabled; I added this as a note to your intake. "
    "Once LLM is enabled, I can help refine it further."
)
INTAKE_OFFLINE_QUESTION = "Please describe your target user more clearly."

_STATE_EVENTS = {
    ProjectState.research_ready.value: ProjectEvent.intake_ready,
    ProjectState.draft.value: ProjectEvent.intake_incomplete,
}


class ChatTarget(str, Enum):
    research = "research"
    intake = "intake"


def _split_result(result: Mapping[str, Any], default_reply: str) -> tuple[dict[str, Any], str]:
    patch = result.get("patch")
    reply = result.get("reply")
    return (
        dict(patch) if isinstance(patch, Mapping) else {},
        reply.strip() if isinstance(reply, str) and reply.strip() else default_reply,
    )


@dataclass
class ChatPatchService:
    contexts: DocumentStore
    docs: DocumentStore
    synthesizer: Synthesizer

    def chat(self, target: ChatTarget | str, user_id: str, project_id: str, message: str) -> dict[str, Any]:
        try:
            target = ChatTarget(target)
        except ValueError:
            raise ValidationError(f"Unknown chat service: {target}", details={"service": str(target)}) from None
        if target is ChatTarget.research:
            return self._chat_research(user_id, project_id, message)
        return self._chat_intake(user_id, project_id, message)

    # ---------- research ----------

    def research_patch(self, doc: Mapping[str, Any], message: str) -> tuple[dict[str, Any], str]:
        if not self.synthesizer.enabled:
            return {"summary": {"nextStep": f"User note: {message}"}}, RESEARCH_OFFLINE_REPLY
        result = self.synthesizer.synthesize(SynthesisMode.chat_research, {"doc": dict(doc), "message": message})
        return _split_result(result, RESEARCH_DEFAULT_REPLY)

    def _chat_research(self, user_id: str, project_id: str, message: str) -> dict[str, Any]:
        doc = self.docs.get(user_id, project_id)
        if doc is None:
            raise NotFoundError("Research document not found", details={"projectId": project_id})

        patch, reply = self.research_patch(doc, message)
        updated = apply_research_patch(doc, patch, actor="assistant")
        core = updated.get("core") or {}
        if core.get("locked") and "personas" in patch:
            updated["core"] = {**core, "dirtyDownstream": True}
        saved = self.docs.save(updated)
        logger.info("Research chat patch project=%s fields=%s", project_id, sorted(patch))
        return {"service": ChatTarget.research.value, "reply": reply, "patch": patch, "doc": saved}

    # ---------- intake ----------

    def intake_patch(self, ctx: Mapping[str, Any], message: str) -> tuple[dict[str, Any], str]:
        if not self.synthesizer.enabled:
            current = (ctx.get("intake") or {}).get("progressBrief") or ""
            patch = {
                "intake": {"progressBrief": f"{current}\nUser note: {message}"},
                "meta": {
                    "readyForResearch": False,
                    "needMoreInput": True,
                    "clarifyingQuestions": [INTAKE_OFFLINE_QUESTION],
                },
                "state": ProjectState.draft.value,
            }
            return patch, INTAKE_OFFLINE_REPLY

        result = self.synthesizer.synthesize(
            SynthesisMode.chat_intake,
            {"context": {"intake": ctx.get("intake") or {}, "meta": ctx.get("meta") or {}}, "message": message},
        )
        patch, reply = _split_result(result, INTAKE_DEFAULT_REPLY)
        if not isinstance(patch.get("meta"), Mapping):
            patch["meta"] = {"readyForResearch": False, "needMoreInput": True, "clarifyingQuestions": []}
        if not isinstance(patch.get("state"), str) or not patch["state"]:
            ready = bool(patch["meta"].get("readyForResearch"))
            patch["state"] = ProjectState.research_ready.value if ready else ProjectState.draft.value
        return patch, reply

    def _chat_intake(self, user_id: str, project_id: str, message: str) -> dict[str, Any]:
        ctx = self.contexts.get(user_id, project_id)
        if ctx is None:
            raise NotFoundError("Project context not found", details={"projectId": project_id})

        patch, reply = self.intake_patch(ctx, message)
        updated = apply_intake_patch(ctx, patch, actor="assistant")

        requested = patch.get("state")
        event = _STATE_EVENTS.get(requested) if isinstance(requested, str) else None
        current = updated.get("state") or ProjectState.draft.value
        if event is not None and can_transition(current, event):
            updated["state"] = transition(current, event).value
        elif requested:
            logger.info("Ignoring chat state change %s -> %s project=%s", current, requested, project_id)

        saved = self.contexts.save(updated)
        return {"service": ChatTarget.intake.value, "reply": reply, "patch": patch, "context": saved}


__all__ = ["ChatPatchService", "ChatTarget"]
