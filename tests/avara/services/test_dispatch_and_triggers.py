from __future__ import annotations

import logging

import pytest
from avara.core.exceptions import ValidationError
from avara.services.dispatch import (
    CORE_BUSINESS_TASK,
    RISK_TASK,
    ROADMAP_TASK,
    TASKS_TASK,
    CeleryDispatcher,
    InlineDispatcher,
)
from avara.services.triggers import DownstreamTrigger


class _AsyncResult:
    id = "celery-1"


class _DummyCeleryClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    def send_task(self, name, *, kwargs):  # type: ignore[no-untyped-def]
        self.sent.append({"name": name, "kwargs": kwargs})
        return _AsyncResult()


def test_celery_dispatcher_sends_by_name():
    client = _DummyCeleryClient()
    task_id = CeleryDispatcher(client).dispatch(RISK_TASK, user_id="u1", project_id="p1", scope="gtm")  # type: ignore[arg-type]
    assert task_id == "celery-1"
    assert client.sent == [{"name": RISK_TASK, "kwargs": {"user_id": "u1", "project_id": "p1", "scope": "gtm"}}]


def test_inline_dispatcher_runs_and_swallows_task_failures(caplog):
    caplog.set_level(logging.WARNING)
    seen = []

    def ok(**kwargs):  # type: ignore[no-untyped-def]
        seen.append(kwargs)

    def boom(**_kwargs):  # type: ignore[no-untyped-def]
        raise RuntimeError("agent crashed")

    dispatcher = InlineDispatcher({"ok": ok, "boom": boom})
    dispatcher.dispatch("ok", project_id="p1")
    dispatcher.dispatch("boom", project_id="p1")

    assert seen == [{"project_id": "p1"}]
    assert "Inline task boom failed" in caplog.text
    with pytest.raises(KeyError):
        dispatcher.dispatch("missing")


def test_fan_out_isolates_failures(dispatcher):
    dispatcher.fail.add(ROADMAP_TASK)
    trigger = DownstreamTrigger(dispatcher)

    results = trigger.fan_out("u1", "p1")

    assert results == {"risk": "queued", "core": "queued", "roadmap": "failed", "task": "queued"}
    assert dispatcher.names() == [RISK_TASK, CORE_BUSINESS_TASK, TASKS_TASK]
    assert dispatcher.sent[0][1]["scope"] == "gtm"


def test_analyse_risk_rejects_unknown_scope(dispatcher):
    with pytest.raises(ValidationError, match="Unknown risk scope"):
        DownstreamTrigger(dispatcher).analyse_risk("u1", "p1", "legal")
