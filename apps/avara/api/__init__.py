"""API router registration helpers.

To avoid import-time side effects (e.g., initializing Mongo or LLM clients)
during test collection, routers are imported lazily inside `register_routes`
rather than at module import time.
"""

from __future__ import annotations

from typing import Iterable

from fastapi import FastAPI


def register_routes(app: FastAPI, services: Iterable[str] | None = None) -> None:
    """Attach the health router plus each named service router (lazy imports).

    `services` defaults to every service; see `AVARA_SERVICES`.
    """
    from avara.api.chat import router as chat_router
    from avara.api.core_business import router as core_business_router
    from avara.api.projects import router as projects_router
    from avara.api.research import router as research_router
    from avara.api.risk import router as risk_router
    from avara.api.roadmap import router as roadmap_router
    from avara.api.system import router as system_router
    from avara.api.task import router as task_router
    from avara.core.settings import ALL_SERVICES

    routers = {
        "research": research_router,
        "projects": projects_router,
        "core": core_business_router,
        "risk": risk_router,
        "roadmap": roadmap_router,
        "task": task_router,
        "chat": chat_router,
    }
    app.include_router(system_router)
    for name in services if services is not None else ALL_SERVICES:
        app.include_router(routers[name])
