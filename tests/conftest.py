from __future__ import annotations

import copy
import os
import socket
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import pytest

# Ensure the app runs in a unit-test-safe configuration during pytest collection.
# This keeps a developer's local .env (OpenAI keys, Mongo URIs) out of unit tests.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("USE_LLM", "false")
os.environ.setdefault("TASK_DISPATCH_MODE", "inline")
os.environ.setdefault("JWT_SECRET", "test-secret")

from avara.services.insights import InsightsService  # noqa: E402
from avara.services.research import ResearchService  # noqa: E402
from avara.services.store import DocumentStore  # noqa: E402
from avara.services.triggers import DownstreamTrigger  # noqa: E402


class NetworkBlockedError(RuntimeError):
    pass


def _blocked(*_args: Any, **_kwargs: Any) -> Any:
    raise NetworkBlockedError(
        "Network access is disabled during tests. "
        "Mark the test with @pytest.mark.integration/@pytest.mark.network or set ALLOW_NETWORK=1."
    )


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> None:
    """Prevent accidental outbound network calls in unit tests."""

    if os.getenv("ALLOW_NETWORK") == "1":
        return

    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("network"):
        return

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket, "getaddrinfo", _blocked)


# --------------------------------------------------------------------------- #
# In-memory Mongo
# --------------------------------------------------------------------------- #

_MISSING = object()


def _get_path(doc: Mapping[str, Any], path: str) -> Any:
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = doc
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _unset_path(doc: dict[str, Any], path: str) -> None:
    parts = path.split(".")
    cur: Any = doc
    for part in parts[:-1]:
        cur = cur.get(part) if isinstance(cur, dict) else None
        if cur is None:
            return
    if isinstance(cur, dict):
        cur.pop(parts[-1], None)


def _matches(doc: Mapping[str, Any], filt: Mapping[str, Any]) -> bool:
    for key, expected in filt.items():
        actual = _get_path(doc, key)
        if actual is _MISSING:
            if expected is not None:
                return False
        elif actual != expected:
            return False
    return True


def _project(doc: Mapping[str, Any], projection: Mapping[str, Any] | None) -> dict[str, Any]:
    out = copy.deepcopy(dict(doc))
    for key, flag in (projection or {}).items():
        if not flag:
            out.pop(key, None)
    return out


@dataclass
class _UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: Any = None


class _Cursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, keys: list[tuple[str, int]]) -> "_Cursor":
        for field, direction in reversed(keys):
            self._docs.sort(key=lambda d: str(d.get(field, "")), reverse=direction < 0)
        return self

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._docs)


class FakeCollection:
    """Just enough of pymongo's Collection for DocumentStore."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.created_indexes: list[dict[str, Any]] = []
        self._next_id = 1

    def create_index(self, keys, **kwargs):  # type: ignore[no-untyped-def]
        self.created_indexes.append({"keys": keys, **kwargs})
        return kwargs.get("name", "idx")

    def find_one(self, filt, projection=None):  # type: ignore[no-untyped-def]
        for doc in self.docs:
            if _matches(doc, filt):
                return _project(doc, projection)
        return None

    def find(self, filt, projection=None):  # type: ignore[no-untyped-def]
        return _Cursor([_project(d, projection) for d in self.docs if _matches(d, filt)])

    def update_one(self, filt, update, upsert=False):  # type: ignore[no-untyped-def]
        target = next((d for d in self.docs if _matches(d, filt)), None)
        inserted = False
        if target is None:
            if not upsert:
                return _UpdateResult(matched_count=0, modified_count=0)
            target = {"_id": self._next_id}
            self._next_id += 1
            for key, value in filt.items():
                if "." not in key:
                    target[key] = copy.deepcopy(value)
            for key, value in update.get("$setOnInsert", {}).items():
                _set_path(target, key, copy.deepcopy(value))
            self.docs.append(target)
            inserted = True

        for key, value in update.get("$set", {}).items():
            _set_path(target, key, copy.deepcopy(value))
        for key in update.get("$unset", {}):
            _unset_path(target, key)
        for key, amount in update.get("$inc", {}).items():
            current = _get_path(target, key)
            _set_path(target, key, (0 if current is _MISSING else current) + amount)

        if inserted:
            return _UpdateResult(matched_count=0, modified_count=0, upserted_id=target["_id"])
        return _UpdateResult(matched_count=1, modified_count=1)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))

    def __getitem__(self, name: str) -> FakeCollection:
        return self.get_collection(name)


# --------------------------------------------------------------------------- #
# Synthesis / dispatch doubles
# --------------------------------------------------------------------------- #


class ScriptedSynthesizer:
    """Stands in for `Synthesizer`: canned responses per mode, calls recorded."""

    def __init__(self, responses: Mapping[str, Any] | None = None, *, enabled: bool = True) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.enabled = enabled
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def synthesize(self, mode: Any, context: Mapping[str, Any]) -> dict[str, Any]:
        key = getattr(mode, "value", mode)
        self.calls.append((key, copy.deepcopy(dict(context))))
        if not self.enabled:
            return {}
        response = self.responses.get(key, {})
        if callable(response):
            response = response(context)
        return copy.deepcopy(response)

    def modes(self) -> list[str]:
        return [mode for mode, _ in self.calls]


class RecordingDispatcher:
    """Records task dispatches; optionally runs handlers or fails named tasks."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.fail: set[str] = set()

    def dispatch(self, task_name: str, **kwargs: Any) -> str | None:
        if task_name in self.fail:
            raise ConnectionError(f"broker unavailable for {task_name}")
        self.sent.append((task_name, kwargs))
        handler = self.handlers.get(task_name)
        if handler is not None:
            handler(**kwargs)
        return f"task-{len(self.sent)}"

    def names(self) -> list[str]:
        return [name for name, _ in self.sent]


# --------------------------------------------------------------------------- #
# Fixtures
# --------------------------------------------------------------------------- #


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def synthesizer() -> ScriptedSynthesizer:
    return ScriptedSynthesizer()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def stores(fake_db: FakeDatabase) -> dict[str, DocumentStore]:
    names = ("projects", "project_contexts", "research_docs", "core_docs", "risk_docs", "roadmap_docs", "task_docs")
    return {name: DocumentStore(fake_db, name) for name in names}


@pytest.fixture
def research_service(
    stores: dict[str, DocumentStore],
    synthesizer: ScriptedSynthesizer,
    dispatcher: RecordingDispatcher,
) -> ResearchService:
    return ResearchService(
        projects=stores["projects"],
        contexts=stores["project_contexts"],
        docs=stores["research_docs"],
        synthesizer=synthesizer,  # type: ignore[arg-type]
        insights=InsightsService(None),
        dispatcher=dispatcher,
        trigger=DownstreamTrigger(dispatcher),
    )
