"""Configuration for the OpenAPI client server."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SESSION_FILE = Path.home() / ".openapi-client-mcp" / "sessions.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-client-mcp")

    openapi_transport: str = Field(default="stdio")
    openapi_host: str = Field(default="127.0.0.1")
    openapi_port: int = Field(default=8000)

    openapi_log_level: str = Field(default="INFO")

    openapi_session_file: Path = Field(default=DEFAULT_SESSION_FILE)

    openapi_request_timeout_seconds: Optional[float] = Field(default=30)
    openapi_document_timeout_seconds: float = Field(default=30)
    openapi_document_cache_seconds: int = Field(default=300)

    openapi_user_agent: str = Field(default="openapi-client-mcp/1.0.0")

    def session_file(self) -> Path:
        return self.openapi_session_file.expanduser()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
