"""Application configuration using Pydantic Settings."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # App settings
    app_name: str = "Workflow Builder"
    debug: bool = False

    # Persistence backend for workflow nodes
    persistence_backend: Literal["http", "supabase", "memory"] = "http"
    persistence_base_url: str = "http://localhost:8080"
    persistence_api_key: str = ""
    persistence_timeout: float = 30.0

    # Supabase Configuration (persistence_backend=supabase)
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_nodes_table: str = "workflow_nodes"
    supabase_workflows_table: str = "workflows"

    # Generation engine
    # Receives the compiled prompt list and answers with {"content": ...}
    generation_url: str = "http://localhost:8090/gpt/hit"
    generation_api_key: Optional[str] = None
    generation_timeout: float = 120.0

    # Defaults written into newly created node records
    default_ai_model: str = "gpt-4"
    default_temperature: int = 7
    default_node_title: str = "Generate Text"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
