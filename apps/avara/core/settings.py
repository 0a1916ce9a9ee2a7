from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ALL_SERVICES: tuple[str, ...] = ("research", "projects", "core", "risk", "roadmap", "task", "chat")


class TaskDispatchMode(str, Enum):
    celery = "celery"
    inline = "inline"


class Settings(BaseSettings):
    """Unified application settings for Avara.

    Loads from env with support for repo ".env" files. Avoids manual load_dotenv().
    """

    _app_env = (os.getenv("APP_ENV") or "").strip().lower()
    _env_files = (
        []
        if _app_env in {"test", "ci"}
        else [
            str((Path(__file__).resolve().parents[1] / ".env")),  # apps/avara/.env
            str((Path(__file__).resolve().parents[3] / ".env")),  # repo root .env
        ]
    )

    model_config = SettingsConfigDict(
        env_file=_env_files,
        case_sensitive=False,
        extra="ignore",
    )

    # --- App / Core ---
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_name: str = Field(default="avara", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str | None = Field(default=None, alias="AVARA_LOG_LEVEL")
    log_level_fallback: str | None = Field(default=None, alias="LOG_LEVEL")

    cors_allow_origins: list[str] = Field(default=["*"], alias="CORS_ALLOW_ORIGINS")

    # Routers mounted by this process. Each HTTP service can run on its own by
    # listing a single name here.
    services: Annotated[list[str], NoDecode] = Field(default=list(ALL_SERVICES), alias="AVARA_SERVICES")

    # --- Auth ---
    jwt_secret: SecretStr | None = Field(default=None, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # --- Mongo ---
    mongo_uri: str = Field(default="mongodb://localhost:27017", alias="MONGO_URI")
    mongo_database: str = Field(default="avara", alias="MONGO_DATABASE")
    projects_collection: str = Field(default="projects", alias="PROJECTS_COLLECTION")
    project_contexts_collection: str = Field(
        default="project_contexts",
        alias="PROJECT_CONTEXTS_COLLECTION",
    )
    research_docs_collection: str = Field(default="research_docs", alias="RESEARCH_DOCS_COLLECTION")
    core_docs_collection: str = Field(default="core_docs", alias="CORE_DOCS_COLLECTION")
    risk_docs_collection: str = Field(default="risk_docs", alias="RISK_DOCS_COLLECTION")
    roadmap_docs_collection: str = Field(default="roadmap_docs", alias="ROADMAP_DOCS_COLLECTION")
    task_docs_collection: str = Field(default="task_docs", alias="TASK_DOCS_COLLECTION")

    # --- Background work ---
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    task_dispatch_mode: TaskDispatchMode = Field(
        default=TaskDispatchMode.celery,
        alias="TASK_DISPATCH_MODE",
    )
    solution_job_max_write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        alias="SOLUTION_JOB_MAX_WRITE_ATTEMPTS",
    )
    # A job still pending after this long no longer blocks lockCore.
    solution_job_timeout_seconds: int = Field(
        default=900,
        ge=1,
        alias="SOLUTION_JOB_TIMEOUT_SECONDS",
    )

    # --- Lifecycle ---
    require_core_lock_for_experiments: bool = Field(
        default=False,
        alias="REQUIRE_CORE_LOCK_FOR_EXPERIMENTS",
    )

    # --- Synthesis (OpenAI) ---
    use_llm: bool = Field(default=True, alias="USE_LLM")
    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(default=None, alias="OPENAI_BASE_URL")
    openai_organization: str | None = Field(default=None, alias="OPENAI_ORG")
    synthesis_model: str = Field(default="gpt-4o-mini", alias="SYNTHESIS_MODEL")
    planner_model: str = Field(default="gpt-4o-mini", alias="PLANNER_MODEL")

    # --- Insights (OpenAI-compatible Hugging Face router) ---
    insights_api_key: SecretStr | None = Field(default=None, alias="HF_API_KEY")
    insights_base_url: str = Field(default="https://router.huggingface.co/v1", alias="HF_BASE_URL")
    insights_model: str = Field(
        default="meta-llama/Meta-Llama-3-8B-Instruct",
        alias="HF_MODEL",
    )

    @field_validator("services", mode="before")
    @classmethod
    def _split_services(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("services")
    @classmethod
    def _known_services(cls, value: list[str]) -> list[str]:
        unknown = sorted(set(value) - set(ALL_SERVICES))
        if unknown:
            raise ValueError(f"Unknown services: {', '.join(unknown)}")
        return value

    @property
    def insights_enabled(self) -> bool:
        return bool(self.insights_api_key and self.insights_api_key.get_secret_value())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
