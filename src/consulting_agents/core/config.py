"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Path: src/consulting_agents/core/config.py -> core -> consulting_agents -> src -> project root
_this_file = Path(__file__).resolve()
_project_root = _this_file.parent.parent.parent.parent
_env_file = _project_root / ".env"

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_env_file) if _env_file.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Consulting Agents"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/consulting_agents"
    database_echo: bool = False

    @field_validator("database_url", mode="before")
    @classmethod
    def use_async_driver(cls, v: str) -> str:
        """Rewrite driverless URLs to the async driver the engine needs."""
        for plain, driver in _ASYNC_DRIVERS.items():
            if v and v.startswith(plain):
                return driver + v[len(plain):]
        return v

    # Generation service (OpenAI-compatible)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    research_model: str = "gpt-4.1-mini"
    report_model: str = "gpt-4.1-mini"

    # Workflow
    research_iterations: int = Field(default=2, ge=1, le=5)
    generation_timeout_seconds: float = Field(default=60.0, gt=0, le=600)

    # Rate limit retries for generation calls
    llm_max_retries: int = Field(default=3, ge=0, le=10)
    llm_base_delay_seconds: float = Field(default=2.0, gt=0, le=30)
    llm_max_delay_seconds: float = Field(default=60.0, gt=0, le=300)

    # Persistence retries (a write that still fails aborts the run)
    persistence_max_retries: int = Field(default=2, ge=0, le=10)
    persistence_retry_delay_seconds: float = Field(default=0.5, ge=0, le=30)

    # MLflow
    tracing_enabled: bool = True
    mlflow_tracking_uri: str = "file:./mlruns"
    mlflow_experiment_name: str = "consulting-agents"

    # CORS (stored as comma-separated string, accessed via cors_origins_list property)
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite (local runs and tests)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
