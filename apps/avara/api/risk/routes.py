from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from avara.core.auth import CurrentUser, get_current_user
from avara.core.dependencies import get_risk_agent
from avara.schemas.agents import GenerateRequest, RiskAnalyseRequest
from avara.services.agents import RiskAgent

router = APIRouter(prefix="/risk", tags=["risk"])


@router.post("/analyse")
async def analyse(
    payload: RiskAnalyseRequest,
    user: CurrentUser = Depends(get_current_user),
    agent: RiskAgent = Depends(get_risk_agent),
):
    return await run_in_threadpool(agent.analyse, user.id, payload.project_id, payload.scope)


@router.post("/generate")
async def generate(
    payload: GenerateRequest,
    user: CurrentUser = Depends(get_current_user),
    agent: RiskAgent = Depends(get_risk_agent),
):
    """Run every scope (problem, core, gtm) in sequence."""
    return await run_in_threadpool(agent.generate, user.id, payload.project_id)


@router.get("/{project_id}")
async def get_risk(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    agent: RiskAgent = Depends(get_risk_agent),
):
    return await run_in_threadpool(agent.get, user.id, project_id)
