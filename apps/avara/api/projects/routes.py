from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from avara.core.auth import CurrentUser, get_current_user
from avara.core.dependencies import get_research_service
from avara.schemas.research import ProjectCreate
from avara.services.research import ResearchService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("")
async def create_project(
    payload: ProjectCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(
        service.create_project,
        user.id,
        payload.project_id,
        name=payload.name,
        industry=payload.industry,
        region=payload.region,
    )


@router.get("")
async def list_projects(
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(service.list_projects, user.id)
