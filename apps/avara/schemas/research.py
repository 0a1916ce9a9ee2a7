from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies arrive camelCased from the wizard frontend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PathType(str, Enum):
    problem = "problem"
    resource = "resource"


class IntakeRequest(CamelModel):
    """Founder intake submitted at the end of the wizard."""

    project_id: str = Field(..., min_length=1)
    path_type: PathType = PathType.problem
    name: str = Field(..., min_length=1)

    # Problem-first fields
    industry: str = ""
    problem: str = ""
    problem_validated: bool = False

    # Both flows may carry a solution
    solution: str = ""
    solution_exists: bool = False
    solution_validated: bool = False

    # Resource-first fields
    resource_description: str = ""
    resource_intent: str = ""

    progress_brief: str = ""
    team_count: int = Field(default=1, ge=0)
    team_skills: list[str] = Field(default_factory=list)
    capital: float = 0
    region: str = ""

    @model_validator(mode="after")
    def _check_path_fields(self) -> "IntakeRequest":
        if self.path_type is PathType.problem:
            if len(self.industry.strip()) < 3:
                raise ValueError("Industry is required and must be at least 3 characters.")
            if len(self.problem.strip()) < 10:
                raise ValueError("Problem is required and must be at least 10 characters.")
        elif len(self.resource_description.strip()) < 10:
            raise ValueError("Resource description is required and must be at least 10 characters.")
        return self

    def to_intake(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DraftAnswers(CamelModel):
    path_type: Optional[PathType] = None
    name: Optional[str] = None
    industry: Optional[str] = None
    problem: Optional[str] = None
    problem_validated: Optional[bool] = None
    solution: Optional[str] = None
    solution_exists: Optional[bool] = None
    solution_validated: Optional[bool] = None
    resource_description: Optional[str] = None
    resource_intent: Optional[str] = None
    team_count: Optional[int] = Field(default=None, ge=0)
    team_skills: Optional[list[str]] = None
    region: Optional[str] = None


class DraftRequest(CamelModel):
    project_id: str = Field(..., min_length=1)
    step: int = Field(..., ge=0, le=5)
    answers: DraftAnswers = Field(default_factory=DraftAnswers)

    def answers_dict(self) -> dict[str, Any]:
        return self.answers.model_dump(mode="json", by_alias=True, exclude_none=True)


class CoreUpdateRequest(CamelModel):
    project_id: str = Field(..., min_length=1)
    field: Literal["problem", "solution", "persona", "persona_primary"]
    text: Optional[str] = None
    persona_id: Optional[str] = None
    validate_: bool = Field(default=False, alias="validate")


class GateRequest(CamelModel):
    approve_experiments: Optional[bool] = None
    approve_proceed_to_gtm: Optional[bool] = Field(default=None, alias="approveProceedToGTM")


class ClarifyRequest(BaseModel):
    answer: str = ""


class ProjectCreate(CamelModel):
    project_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    industry: Optional[str] = None
    region: Optional[str] = None
