from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("sql", "document")


def _discover_env_files() -> tuple[str, ...]:
    """Determine which env files should be loaded."""
    files: list[str] = []

    custom_env = os.getenv("ENV_FILE")
    if custom_env and Path(custom_env).is_file():
        files.append(custom_env)

    project_root = Path(__file__).resolve().parents[4]
    dot_env = project_root / ".env"
    if dot_env.is_file():
        files.append(str(dot_env))

    return tuple(dict.fromkeys(files))  # Preserve order, remove duplicates


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_discover_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: str = Field(default="development", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    enable_swagger_ui: bool = Field(default=True, alias="ENABLE_SWAGGER_UI")

    storage_backend: str = Field(default="sql", alias="STORAGE_BACKEND")
    database_url: str = Field(default="sqlite:///./textchan.db", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    allow_weekday_posting: bool = Field(default=False, alias="ALLOW_WEEKDAY_POSTING")
    storage_limit_bytes: int = Field(default=1024 * 1024 * 1024, alias="STORAGE_LIMIT_BYTES", gt=0)
    storage_warning_threshold: float = Field(default=0.9, alias="STORAGE_WARNING_THRESHOLD", gt=0, le=1)
    max_body_length: int = Field(default=2000, alias="MAX_BODY_LENGTH", gt=0)
    stream_heartbeat_seconds: float = Field(default=30.0, alias="STREAM_HEARTBEAT_SECONDS", gt=0)

    api_url: str = Field(default="http://localhost:3000", alias="TEXTCHAN_API_URL")
    user_id_file: Path = Field(
        default_factory=lambda: Path.home() / ".textchan_user_id",
        alias="TEXTCHAN_USER_ID_FILE",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in stripped.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return []

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            backend = value.strip().lower()
            if backend not in STORAGE_BACKENDS:
                raise ValueError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")
            return backend
        return "sql"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
