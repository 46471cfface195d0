"""Centralized configuration for the prospect podcast matcher.

This module reads environment variables (optionally from a .env file) using
Pydantic's `BaseSettings`. Values are accessed through the cached
`get_settings()` instance so every part of the app sees the same values.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration pulled from environment variables."""

    # --- Embeddings (OpenAI) -------------------------------------------------
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1", description="Base URL for the embeddings API")
    EMBEDDING_MODEL: str = Field("text-embedding-3-small", description="Model used for prospect embeddings")
    EMBEDDING_DIMENSIONS: int = Field(1536, description="Vector size; must match the stored podcast embeddings")

    # --- Relevance LLM (Gemini) ---------------------------------------------
    GOOGLE_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    GEMINI_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_OUTPUT_TOKENS: int = 4096

    # --- PostgreSQL ---------------------------------------------------------
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: Optional[str] = None
    SIMILARITY_SEARCH_FUNCTION: str = Field(
        "search_similar_podcasts",
        description="Name of the SQL function returning nearest podcasts for an embedding",
    )

    # --- Dashboard ----------------------------------------------------------
    APP_URL: str = "https://authoritybuilt.com"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars rather than error
    )

    @property
    def database_url(self) -> Optional[str]:
        """Explicit DATABASE_URL wins; otherwise assemble one from the POSTGRES_* parts."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_DB]):
            return None
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Return a cached *singleton* Settings instance.

    Using `lru_cache()` ensures we only parse environment variables once per
    process.
    """
    return Settings()  # type: ignore[call-arg]


__all__ = [
    "Settings",
    "get_settings",
]
