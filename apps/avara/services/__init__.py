"""Service layer package.

Keep imports lazy to avoid initializing heavyweight dependencies at import time
(Mongo, LLM clients). Common symbols are still reachable from
`avara.services` through `__getattr__` proxies.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ChatPatchService",
    "DocumentStore",
    "ResearchService",
    "Synthesizer",
]


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    if name == "ResearchService":
        from .research import ResearchService

        return ResearchService
    if name == "ChatPatchService":
        from .chat import ChatPatchService

        return ChatPatchService
    if name == "DocumentStore":
        from .store import DocumentStore

        return DocumentStore
    if name == "Synthesizer":
        from .synthesis import Synthesizer

        return Synthesizer
    raise AttributeError(name)
