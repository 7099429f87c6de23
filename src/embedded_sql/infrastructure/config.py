"""Configuration management for embedded SQL databases."""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """Backing image storage configuration."""

    image_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory holding the backing image files of open databases",
    )
    file_prefix: str = Field(
        default="dbfile_", min_length=1, description="Prefix for backing image file names"
    )


class EngineConfig(BaseModel):
    """SQL engine configuration."""

    busy_timeout_seconds: float = Field(
        default=5.0, ge=0.0, description="How long the engine waits on a locked image"
    )
    script_split: Literal["naive", "lexical"] = Field(
        default="naive",
        description="How exec() cuts scripts into fragments: on every ';' or on top-level ';' only",
    )


class ServerConfig(BaseModel):
    """REST server configuration."""

    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    metrics_enabled: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")
    seed_image: Path | None = Field(
        default=None, description="Optional database image used to seed the served database"
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="embedded_sql", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for embedded SQL."""

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDED_SQL_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the image directory exists."""
        self.storage.image_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    config = Config()
    config.ensure_directories()
    return config
