from __future__ import annotations

from typing import Any

from avara.services.agents.base import DownstreamAgent
from avara.services.normalize import as_text, as_text_list
from avara.services.synthesis import SynthesisMode

TEXT_FIELDS = ("purpose", "mission", "vision", "strategicFocus", "tagline")


class CoreBusinessAgent(DownstreamAgent):
    """Purpose, mission, vision and strategic focus for the venture."""

    name = "core_business"
    doc_key = "core"
    mode = SynthesisMode.core_business

    def empty(self) -> dict[str, Any]:
        return {**{key: "" for key in TEXT_FIELDS}, "brandValues": []}

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {key: as_text(raw.get(key)).strip() for key in TEXT_FIELDS}
        out["brandValues"] = as_text_list(raw.get("brandValues"))[:5]
        return out
