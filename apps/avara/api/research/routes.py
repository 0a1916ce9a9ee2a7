from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status
from starlette.concurrency import run_in_threadpool

from avara.core.auth import CurrentUser, get_current_user
from avara.core.dependencies import get_research_service
from avara.schemas.research import (
    ClarifyRequest,
    CoreUpdateRequest,
    DraftRequest,
    GateRequest,
    IntakeRequest,
)
from avara.services.research import ResearchService

router = APIRouter(prefix="/research", tags=["research"])
logger = logging.getLogger(__name__)


@router.post("/start")
async def start_research(
    payload: IntakeRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    # Synthesis and enrichment block on network I/O; keep them off the event loop.
    return await run_in_threadpool(service.start_research, user.id, payload.to_intake())


@router.post("/draft")
async def save_draft(
    payload: DraftRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(
        service.save_draft,
        user.id,
        payload.project_id,
        payload.step,
        payload.answers_dict(),
    )


@router.get("/{project_id}/draft")
async def get_draft(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    draft = await run_in_threadpool(service.get_draft, user.id, project_id)
    if draft is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return draft


@router.get("/{project_id}")
async def get_research(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(service.get_research, user.id, project_id)


@router.put("/core")
async def update_core(
    payload: CoreUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(
        service.update_core,
        user.id,
        payload.project_id,
        payload.field,
        text=payload.text,
        persona_id=payload.persona_id,
        validate=payload.validate_,
    )


@router.post("/{project_id}/lock")
async def lock_core(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(service.lock_core, user.id, project_id)


@router.post("/{project_id}/gate")
async def advance_gates(
    project_id: str,
    payload: GateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(
        service.advance_gates,
        user.id,
        project_id,
        approve_experiments=payload.approve_experiments,
        approve_gtm=payload.approve_proceed_to_gtm,
    )


@router.post("/{project_id}/clarify")
async def submit_clarification(
    project_id: str,
    payload: ClarifyRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ResearchService = Depends(get_research_service),
):
    return await run_in_threadpool(service.submit_clarification, user.id, project_id, payload.answer)
