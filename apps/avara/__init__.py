"""Avara: startup research orchestration service."""

__version__ = "0.1.0"
