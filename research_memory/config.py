"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Research memory configuration. All values come from environment variables."""

    # Vector store
    vector_backend: str = Field(default="qdrant")  # "qdrant" or "memory"
    qdrant_url: str = Field(default="")
    qdrant_api_key: str = Field(default="")
    memory_collection: str = Field(default="research_memory")

    # Embeddings
    embedding_backend: str = Field(default="hash")  # "hash" or "http"
    embedding_dimension: int = Field(default=1024)
    embedding_api_url: str = Field(default="https://api.openai.com/v1")
    embedding_api_key: str = Field(default="")
    embedding_model: str = Field(default="text-embedding-3-small")

    # Retrieval policy
    memory_similarity_threshold: float = Field(default=0.7)
    memory_similarity_weight: float = Field(default=0.7)
    memory_recency_weight: float = Field(default=0.3)
    memory_recency_window_hours: float = Field(default=24.0)
    memory_max_results: int = Field(default=10)
    memory_min_candidates: int = Field(default=10)
    memory_page_size: int = Field(default=1000)

    # Conversation
    conversation_window_size: int = Field(default=15)
    context_timeout_seconds: float = Field(default=5.0)

    # Database (chat sessions)
    database_path: Path = Field(default=Path("data/research_memory.db"))

    # Admin server
    admin_port: int = Field(default=8080)
    admin_secret: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def memory_configured(self) -> bool:
        """Whether a vector backend has enough configuration to connect."""
        if self.vector_backend == "memory":
            return True
        return bool(self.qdrant_url)


settings = Settings()
