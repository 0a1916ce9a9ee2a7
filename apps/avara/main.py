import logging
from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Environment is loaded by Pydantic Settings (see avara.core.settings).
from avara.api import register_routes
from avara.core.dependencies import ensure_all_indexes
from avara.core.exceptions import register_exception_handlers
from avara.core.logging import setup_logging
from avara.core.settings import settings

# Initialize logging early so all modules inherit the handlers/level
setup_logging()

logger = logging.getLogger(__name__)


def create_app(services: Iterable[str] | None = None) -> FastAPI:
    """Build the API; `services` narrows the mounted routers (default: AVARA_SERVICES)."""
    mounted = list(services) if services is not None else list(settings.services)

    app = FastAPI(title="Avara API")
    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_routes(app, mounted)

    @app.on_event("startup")
    def _ensure_indexes_on_startup() -> None:
        """Best-effort: a Mongo outage must not block app startup."""
        try:
            ensure_all_indexes()
        except Exception as exc:  # pragma: no cover - external dependency
            logger.warning("Failed to ensure indexes: %s", exc)

    logger.info("Avara API initialized services=%s", ",".join(mounted))
    return app


app = create_app()
