from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from avara.core.exceptions import NotFoundError
from avara.core.utils import utcnow_iso
from avara.services.store import DocumentStore
from avara.services.synthesis import SynthesisMode, Synthesizer

logger = logging.getLogger(__name__)


@dataclass
class DownstreamAgent:
    """Owns one document type derived from the research doc.

    `generate` regenerates the whole document from the current research doc;
    `get` distinguishes "never generated" from an error by returning the
    empty shape with ``generated: False``.
    """

    research_docs: DocumentStore
    store: DocumentStore
    synthesizer: Synthesizer

    name: ClassVar[str] = "agent"
    doc_key: ClassVar[str] = "doc"
    mode: ClassVar[SynthesisMode]

    def empty(self) -> dict[str, Any]:
        raise NotImplementedError

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def present(self, doc: dict[str, Any]) -> Any:
        return doc

    def research_doc(self, user_id: str, project_id: str) -> dict[str, Any]:
        doc = self.research_docs.get(user_id, project_id)
        if doc is None:
            raise NotFoundError("Research document not found", details={"projectId": project_id})
        return doc

    def generate(self, user_id: str, project_id: str) -> dict[str, Any]:
        research = self.research_doc(user_id, project_id)
        raw = self.synthesizer.synthesize(self.mode, {"researchDoc": research})
        fields = self.normalize(raw)
        doc = self.store.upsert(user_id, project_id, {**fields, "generatedAt": utcnow_iso()})
        logger.info("%s generated project=%s", self.name, project_id)
        return {"ok": True, self.doc_key: self.present(doc)}

    def get(self, user_id: str, project_id: str) -> dict[str, Any]:
        doc = self.store.get(user_id, project_id)
        if doc is None:
            empty = {"projectId": project_id, **self.empty()}
            return {"ok": True, self.doc_key: self.present(empty), "generated": False}
        return {"ok": True, self.doc_key: self.present(doc), "generated": True}
