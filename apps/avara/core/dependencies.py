"""Central dependency providers (FastAPI + tasks).

These helpers keep heavy clients (Mongo, LLM wrappers) process-scoped and
reusable, avoiding per-request connection creation and enabling test-time cache
clearing/overrides.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from pymongo import MongoClient
from pymongo.database import Database

from avara.core.settings import TaskDispatchMode, settings

if TYPE_CHECKING:
    from avara.services.agents import CoreBusinessAgent, RiskAgent, RoadmapAgent, TaskAgent
    from avara.services.chat import ChatPatchService
    from avara.services.dispatch import TaskDispatcher
    from avara.services.insights import InsightsService
    from avara.services.llm_service import LLMService
    from avara.services.research import ResearchService
    from avara.services.store import DocumentStore
    from avara.services.synthesis import Synthesizer
    from avara.services.triggers import DownstreamTrigger

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_mongo_client() -> MongoClient:
    return MongoClient(settings.mongo_uri, tz_aware=True)


@lru_cache(maxsize=1)
def get_mongo_database() -> Database:
    return get_mongo_client()[settings.mongo_database]


def _store(collection_name: str) -> DocumentStore:
    from avara.services.store import DocumentStore

    return DocumentStore(get_mongo_database(), collection_name)


@lru_cache(maxsize=1)
def get_projects_store() -> DocumentStore:
    return _store(settings.projects_collection)


@lru_cache(maxsize=1)
def get_contexts_store() -> DocumentStore:
    return _store(settings.project_contexts_collection)


@lru_cache(maxsize=1)
def get_research_docs_store() -> DocumentStore:
    return _store(settings.research_docs_collection)


@lru_cache(maxsize=1)
def get_core_docs_store() -> DocumentStore:
    return _store(settings.core_docs_collection)


@lru_cache(maxsize=1)
def get_risk_docs_store() -> DocumentStore:
    return _store(settings.risk_docs_collection)


@lru_cache(maxsize=1)
def get_roadmap_docs_store() -> DocumentStore:
    return _store(settings.roadmap_docs_collection)


@lru_cache(maxsize=1)
def get_task_docs_store() -> DocumentStore:
    return _store(settings.task_docs_collection)


@lru_cache(maxsize=1)
def get_llm_service() -> LLMService:
    from avara.services.llm_service import LLMService

    return LLMService()


@lru_cache(maxsize=1)
def get_synthesizer() -> Synthesizer:
    from avara.services.synthesis import Synthesizer

    if not settings.use_llm:
        logger.info("USE_LLM is off; synthesis returns defaults")
        return Synthesizer(None, enabled=False)
    return Synthesizer(
        get_llm_service(),
        synthesis_model=settings.synthesis_model,
        planner_model=settings.planner_model,
    )


@lru_cache(maxsize=1)
def get_insights_service() -> InsightsService:
    from avara.services.insights import InsightsService
    from avara.services.llm_service import LLMService

    # Optional provider: without a key every insights call degrades to empty.
    if not settings.insights_enabled:
        return InsightsService(None)
    return InsightsService(
        LLMService(
            api_key=settings.insights_api_key.get_secret_value(),  # type: ignore[union-attr]
            base_url=settings.insights_base_url,
            model=settings.insights_model,
        )
    )


@lru_cache(maxsize=1)
def get_task_dispatcher() -> TaskDispatcher:
    from avara.services.dispatch import CeleryDispatcher, InlineDispatcher

    if settings.task_dispatch_mode == TaskDispatchMode.inline:
        return InlineDispatcher()
    return CeleryDispatcher()


@lru_cache(maxsize=1)
def get_downstream_trigger() -> DownstreamTrigger:
    from avara.services.triggers import DownstreamTrigger

    return DownstreamTrigger(get_task_dispatcher())


@lru_cache(maxsize=1)
def get_research_service() -> ResearchService:
    from avara.services.research import ResearchService

    return ResearchService(
        projects=get_projects_store(),
        contexts=get_contexts_store(),
        docs=get_research_docs_store(),
        synthesizer=get_synthesizer(),
        insights=get_insights_service(),
        dispatcher=get_task_dispatcher(),
        trigger=get_downstream_trigger(),
        require_core_lock_for_experiments=settings.require_core_lock_for_experiments,
        solution_job_max_write_attempts=settings.solution_job_max_write_attempts,
        solution_job_timeout_seconds=settings.solution_job_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_core_business_agent() -> CoreBusinessAgent:
    from avara.services.agents import CoreBusinessAgent

    return CoreBusinessAgent(get_research_docs_store(), get_core_docs_store(), get_synthesizer())


@lru_cache(maxsize=1)
def get_risk_agent() -> RiskAgent:
    from avara.services.agents import RiskAgent

    return RiskAgent(get_research_docs_store(), get_risk_docs_store(), get_synthesizer())


@lru_cache(maxsize=1)
def get_roadmap_agent() -> RoadmapAgent:
    from avara.services.agents import RoadmapAgent

    return RoadmapAgent(get_research_docs_store(), get_roadmap_docs_store(), get_synthesizer())


@lru_cache(maxsize=1)
def get_task_agent() -> TaskAgent:
    from avara.services.agents import TaskAgent

    return TaskAgent(get_research_docs_store(), get_task_docs_store(), get_synthesizer())


@lru_cache(maxsize=1)
def get_chat_service() -> ChatPatchService:
    from avara.services.chat import ChatPatchService

    return ChatPatchService(
        contexts=get_contexts_store(),
        docs=get_research_docs_store(),
        synthesizer=get_synthesizer(),
    )


def ensure_all_indexes() -> None:
    """Create the per-collection indexes; failures are logged, not raised."""
    getters = (
        get_projects_store,
        get_contexts_store,
        get_research_docs_store,
        get_core_docs_store,
        get_risk_docs_store,
        get_roadmap_docs_store,
        get_task_docs_store,
    )
    for getter in getters:
        store = getter()
        try:
            store.ensure_indexes()
            logger.info("Indexes ensured for %s", store.collection_name)
        except Exception as exc:  # pragma: no cover - external dependency
            logger.warning("Failed to ensure indexes for %s: %s", store.collection_name, exc)
