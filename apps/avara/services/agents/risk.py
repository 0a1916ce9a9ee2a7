from __future__ import annotations

import logging
from typing import Any

from avara.core.exceptions import ValidationError
from avara.core.utils import clamp_int
from avara.services.agents.base import DownstreamAgent
from avara.services.normalize import as_int, as_text, one_of
from avara.services.synthesis import SynthesisMode
from avara.services.triggers import RISK_SCOPES

logger = logging.getLogger(__name__)

SEVERITIES = ("low", "medium", "high")


def scope_field(scope: str) -> str:
    return f"{scope}Risks"


def derive_severity(impact: int, likelihood: int) -> str:
    score = impact * likelihood
    if score >= 15:
        return "high"
    if score >= 8:
        return "medium"
    return "low"


def normalize_risks(raw: Any, scope: str) -> list[dict[str, Any]]:
    items = raw if isinstance(raw, list) else []
    out = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        impact = clamp_int(as_int(item.get("impact"), 3), lo=1, hi=5)
        likelihood = clamp_int(as_int(item.get("likelihood"), 3), lo=1, hi=5)
        severity = item.get("severity")
        severity = severity.lower() if isinstance(severity, str) else None
        out.append(
            {
                "id": as_text(item.get("id"), f"{scope}_risk_{idx + 1}"),
                "scope": scope,
                "title": as_text(item.get("title"), "Untitled risk"),
                "description": as_text(item.get("description")),
                "category": as_text(item.get("category"), "Other"),
                "impact": impact,
                "likelihood": likelihood,
                "severity": one_of(severity, SEVERITIES, derive_severity(impact, likelihood)),
                "mitigation": as_text(item.get("mitigation")),
                "sourceHint": as_text(item.get("sourceHint")),
            }
        )
    return out


class RiskAgent(DownstreamAgent):
    """Risk register split by pipeline stage.

    Each scope array is written only by its own `analyse` call, so the
    problem, core and gtm passes never overwrite each other.
    """

    name = "risk"
    doc_key = "risk"
    mode = SynthesisMode.risk

    def empty(self) -> dict[str, Any]:
        return {**{scope_field(s): [] for s in RISK_SCOPES}, "summary": "", "scopeSummaries": {}}

    def analyse(self, user_id: str, project_id: str, scope: str) -> dict[str, Any]:
        if scope not in RISK_SCOPES:
            raise ValidationError(f"Unknown risk scope: {scope}", details={"scope": scope})
        research = self.research_doc(user_id, project_id)
        raw = self.synthesizer.synthesize(self.mode, {"scope": scope, "researchDoc": research})
        risks = normalize_risks(raw.get("risks"), scope)
        summary = as_text(raw.get("summary")).strip()

        self.store.upsert(
            user_id,
            project_id,
            {scope_field(scope): risks, "summary": summary, f"scopeSummaries.{scope}": summary},
            on_insert={scope_field(s): [] for s in RISK_SCOPES if s != scope},
        )
        logger.info("Risk analysed project=%s scope=%s risks=%d", project_id, scope, len(risks))
        return {"ok": True, "scope": scope, "summary": summary, "risks": risks}

    def generate(self, user_id: str, project_id: str) -> dict[str, Any]:
        self.research_doc(user_id, project_id)
        for scope in RISK_SCOPES:
            self.analyse(user_id, project_id, scope)
        return {"ok": True, self.doc_key: self.store.get(user_id, project_id)}
