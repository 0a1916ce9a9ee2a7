from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from avara.core.auth import CurrentUser, get_current_user
from avara.core.dependencies import get_task_agent
from avara.schemas.agents import GenerateRequest
from avara.services.agents import TaskAgent

router = APIRouter(prefix="/task", tags=["task"])


@router.post("/generate")
async def generate(
    payload: GenerateRequest,
    user: CurrentUser = Depends(get_current_user),
    agent: TaskAgent = Depends(get_task_agent),
):
    return await run_in_threadpool(agent.generate, user.id, payload.project_id)


@router.get("/{project_id}")
async def get_doc(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    agent: TaskAgent = Depends(get_task_agent),
):
    return await run_in_threadpool(agent.get, user.id, project_id)
