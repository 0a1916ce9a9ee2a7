import logging

from avara.core.logging import resolve_level, setup_logging


def test_setup_logging_string_levels():
    setup_logging("ERROR")
    root = logging.getLogger()
    assert root.getEffectiveLevel() == logging.ERROR
    assert len(root.handlers) >= 1

    setup_logging("debug")
    assert logging.getLogger().getEffectiveLevel() == logging.DEBUG


def test_setup_logging_numeric():
    setup_logging(10)  # DEBUG
    assert logging.getLogger().getEffectiveLevel() == logging.DEBUG


def test_setup_logging_from_env(monkeypatch):
    monkeypatch.setenv("AVARA_LOG_LEVEL", "WARNING")
    setup_logging(None)  # resolve from env
    assert logging.getLogger().getEffectiveLevel() == logging.WARNING


def test_resolve_level_fallbacks(monkeypatch):
    monkeypatch.delenv("AVARA_LOG_LEVEL", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "30")
    assert resolve_level() == logging.WARNING

    monkeypatch.delenv("LOG_LEVEL")
    assert resolve_level() == logging.INFO
    assert resolve_level("nonsense") == logging.INFO
