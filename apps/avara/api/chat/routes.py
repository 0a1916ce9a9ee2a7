from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from avara.core.auth import CurrentUser, get_current_user
from avara.core.dependencies import get_chat_service
from avara.schemas.chat import ChatRequest
from avara.services.chat import ChatPatchService, ChatTarget

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


@router.post("/{service}/{project_id}")
async def chat(
    service: ChatTarget,
    project_id: str,
    payload: ChatRequest,
    user: CurrentUser = Depends(get_current_user),
    chat_service: ChatPatchService = Depends(get_chat_service),
):
    logger.debug("Chat message service=%s project=%s", service.value, project_id)
    return await run_in_threadpool(chat_service.chat, service, user.id, project_id, payload.message)
