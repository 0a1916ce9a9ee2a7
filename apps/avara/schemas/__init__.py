"""Pydantic schemas shared across the app."""

from .agents import GenerateRequest, RiskAnalyseRequest
from .chat import ChatRequest
from .research import (
    ClarifyRequest,
    CoreUpdateRequest,
    DraftAnswers,
    DraftRequest,
    GateRequest,
    IntakeRequest,
    ProjectCreate,
)

__all__ = [
    "ChatRequest",
    "ClarifyRequest",
    "CoreUpdateRequest",
    "DraftAnswers",
    "DraftRequest",
    "GateRequest",
    "GenerateRequest",
    "IntakeRequest",
    "ProjectCreate",
    "RiskAnalyseRequest",
]
