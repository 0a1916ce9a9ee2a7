from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., min_length=1, alias="projectId")


class RiskAnalyseRequest(GenerateRequest):
    scope: Literal["problem", "core", "gtm"]
