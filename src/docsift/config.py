"""Configuration management for the docsift MCP server."""

import os
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSIFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Runtime environment (development, staging, production)",
    )
    server_name: str = Field(default="docsift", description="MCP server name")
    server_host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    server_port: int = Field(default=3000, description="Server bind port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # PostgreSQL configuration
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_user: str = Field(default="docsift", description="PostgreSQL user")
    postgres_password: SecretStr = Field(
        default=SecretStr("docsift_dev"), description="PostgreSQL password"
    )
    postgres_db: str = Field(default="docsift", description="PostgreSQL database name")
    postgres_pool_size: int = Field(default=10, description="Connection pool size")
    postgres_max_overflow: int = Field(default=20, description="Max overflow connections")

    # Redis configuration (job progress + arq queue)
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    job_ttl_seconds: int = Field(
        default=86400, ge=60, description="Crawl job record TTL (renewed on every write)"
    )

    # Rendering backend (browserless or any CDP endpoint)
    browser_ws_url: str = Field(
        default="ws://localhost:3001",
        description="CDP websocket endpoint of the shared headless browser",
    )

    # Embedding configuration (OpenAI-compatible API, OpenRouter by default)
    embedding_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="API key for the embeddings endpoint",
    )
    embedding_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the OpenAI-compatible embeddings API",
    )
    embedding_model: str = Field(
        default="openai/text-embedding-3-small",
        description="Embedding model",
    )
    embedding_dimensions: int = Field(
        default=1536,
        description="Embedding vector dimensions (must match the page_chunks.embedding column)",
    )
    embedding_batch_size: int = Field(
        default=100, ge=1, le=100, description="Texts per embeddings request"
    )

    @model_validator(mode="after")
    def check_api_key_fallbacks(self) -> "Settings":
        """Fall back to non-prefixed env vars for the embeddings key."""
        if not self.embedding_api_key.get_secret_value():
            for name in ("OPENROUTER_API_KEY", "OPENAI_API_KEY"):
                fallback = os.environ.get(name, "")
                if fallback:
                    object.__setattr__(self, "embedding_api_key", SecretStr(fallback))
                    break
        return self

    # Crawl configuration
    crawl_concurrency: int = Field(default=3, ge=1, description="Pages processed in parallel")
    crawl_max_pages: int = Field(default=100, ge=1, description="Default page cap per crawl")
    crawl_page_timeout_ms: int = Field(
        default=30000, ge=1000, description="Navigation timeout per page (ms)"
    )
    crawl_in_process: bool = Field(
        default=False,
        description="Run crawls as tasks inside the server instead of the arq worker",
    )

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL for asyncpg."""
        password = self.postgres_password.get_secret_value()
        return f"postgresql+asyncpg://{self.postgres_user}:{password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"


# Global settings instance
settings = Settings()
