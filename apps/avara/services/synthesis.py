"""Synthesis boundary: ``synthesize(mode, context) -> dict``.

Model calls are unreliable, so every failure here (transport errors,
timeouts, unparseable or non-object output) is logged and degraded to an
empty dict. Callers normalize whatever comes back.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from avara.prompts import load_prompt
from avara.services.llm_service import LLMService

logger = logging.getLogger(__name__)


class SynthesisMode(str, Enum):
    core = "core"
    refine_solution = "refine_solution"
    downstream = "downstream"
    intake_quality = "intake_quality"
    core_business = "core_business"
    risk = "risk"
    roadmap = "roadmap"
    tasks = "tasks"
    chat_research = "chat_research"
    chat_intake = "chat_intake"


@dataclass(frozen=True)
class ModeConfig:
    prompt: tuple[str, ...]
    planner: bool = False
    temperature: float = 0.25


MODES: dict[SynthesisMode, ModeConfig] = {
    SynthesisMode.core: ModeConfig(("research", "core.md")),
    SynthesisMode.refine_solution: ModeConfig(("research", "refine_solution.md")),
    SynthesisMode.downstream: ModeConfig(("research", "downstream.md")),
    SynthesisMode.intake_quality: ModeConfig(("research", "intake_quality.md"), planner=True, temperature=0.3),
    SynthesisMode.core_business: ModeConfig(("agents", "core_business.md"), temperature=0.3),
    SynthesisMode.risk: ModeConfig(("agents", "risk.md")),
    SynthesisMode.roadmap: ModeConfig(("agents", "roadmap.md"), temperature=0.3),
    SynthesisMode.tasks: ModeConfig(("agents", "tasks.md")),
    SynthesisMode.chat_research: ModeConfig(("chat", "research.md"), planner=True, temperature=0.3),
    SynthesisMode.chat_intake: ModeConfig(("chat", "intake.md"), planner=True, temperature=0.3),
}


class Synthesizer:
    """Mode-keyed structured generation over an `LLMService`."""

    def __init__(
        self,
        llm: LLMService | None = None,
        *,
        enabled: bool = True,
        synthesis_model: str | None = None,
        planner_model: str | None = None,
    ) -> None:
        self.llm = llm
        self.enabled = enabled and llm is not None
        self.synthesis_model = synthesis_model
        self.planner_model = planner_model

    def synthesize(self, mode: SynthesisMode | str, context: Mapping[str, Any]) -> dict[str, Any]:
        mode = SynthesisMode(mode)
        if not self.enabled:
            logger.debug("Synthesis disabled; %s returns empty result", mode.value)
            return {}

        cfg = MODES[mode]
        try:
            system_prompt = load_prompt(*cfg.prompt)
            payload = json.dumps({"mode": mode.value, **dict(context)}, default=str)
            result = self.llm.chat_json(  # type: ignore[union-attr]
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": payload},
                ],
                model=self.planner_model if cfg.planner else self.synthesis_model,
                temperature=cfg.temperature,
            )
        except Exception as exc:
            logger.warning("Synthesis %s degraded to defaults: %s", mode.value, exc)
            return {}

        if not isinstance(result, dict):
            logger.warning("Synthesis %s returned %s; using defaults", mode.value, type(result).__name__)
            return {}
        return result


__all__ = ["MODES", "ModeConfig", "SynthesisMode", "Synthesizer"]
