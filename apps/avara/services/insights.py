"""Secondary insights provider (OpenAI-compatible router).

Adds SPA scores, persona and competitor hints to a fresh intake, and
critiques a finished research doc. It is optional: without an API key,
or on any failure, callers get empty extras and the pipeline continues.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping

from avara.prompts import load_prompt
from avara.services.llm_service import LLMService
from avara.services.normalize import as_number, as_text, as_text_list, normalize_spa

logger = logging.getLogger(__name__)

# Keep the critique payload bounded.
_MAX_DOC_CHARS = 8000


def empty_enrichment() -> dict[str, Any]:
    return {"spa": None, "personas": [], "competitors": [], "clarifyingQuestions": []}


class InsightsService:
    def __init__(self, llm: LLMService | None = None) -> None:
        self.llm = llm

    @property
    def enabled(self) -> bool:
        return self.llm is not None

    def _ask(self, prompt: str, payload: str, *, max_tokens: int = 768, temperature: float = 0.3) -> dict[str, Any]:
        return self.llm.chat_json(  # type: ignore[union-attr]
            [
                {"role": "system", "content": load_prompt("insights", prompt)},
                {"role": "user", "content": payload},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=False,
        )

    def _spa(self, payload: str) -> dict[str, Any]:
        return self._ask("spa.md", payload, max_tokens=512)

    def _personas(self, payload: str) -> list[Any]:
        personas = self._ask("personas.md", payload).get("personas")
        return personas if isinstance(personas, list) else []

    def _competitors(self, payload: str) -> list[Any]:
        competitors = self._ask("competitors.md", payload, temperature=0.4).get("competitors")
        return competitors if isinstance(competitors, list) else []

    def enrich_intake(self, intake: Mapping[str, Any]) -> dict[str, Any]:
        """Run the three lookups concurrently; any failure yields empty extras."""
        if not self.enabled:
            logger.debug("Insights provider not configured; skipping enrichment")
            return empty_enrichment()

        payload = json.dumps(
            {
                key: intake.get(key)
                for key in ("pathType", "industry", "region", "problem", "solution", "resourceDescription")
            },
            default=str,
        )
        try:
            with ThreadPoolExecutor(max_workers=3) as executor:
                spa_future = executor.submit(self._spa, payload)
                personas_future = executor.submit(self._personas, payload)
                competitors_future = executor.submit(self._competitors, payload)
                spa_result = spa_future.result()
                personas = personas_future.result()
                competitors = competitors_future.result()
        except Exception as exc:
            logger.warning("Insights enrichment failed: %s", exc)
            return empty_enrichment()

        return {
            "spa": normalize_spa(spa_result.get("spa")),
            "personas": [p for p in personas if isinstance(p, dict)],
            "competitors": [c for c in competitors if isinstance(c, dict)],
            "clarifyingQuestions": as_text_list(spa_result.get("clarifyingQuestions")),
        }

    def assess_reliability(self, intake: Mapping[str, Any], doc: Mapping[str, Any]) -> dict[str, Any] | None:
        """Critique a research doc. None means "no assessment", not "unreliable"."""
        if not self.enabled:
            return None
        payload = json.dumps({"intake": intake, "doc": doc}, default=str)[:_MAX_DOC_CHARS]
        try:
            raw = self._ask("reliability.md", payload, temperature=0.2)
        except Exception as exc:
            logger.warning("Reliability assessment failed: %s", exc)
            return None

        score = as_number(raw.get("reliabilityScore"))
        return {
            "reliabilityScore": None if score is None else max(0.0, min(1.0, score)),
            "concerns": as_text_list(raw.get("concerns")),
            "recommendedChecks": as_text_list(raw.get("recommendedChecks")),
            "versionTag": as_text(raw.get("versionTag"), "insights-v1"),
        }


__all__ = ["InsightsService", "empty_enrichment"]
