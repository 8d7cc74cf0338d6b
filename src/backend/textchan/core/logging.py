from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Iterable

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .config import Settings, get_settings


def _mask_secret(secret: str, visible: int = 2) -> str:
    secret = secret.strip()
    if not secret:
        return secret
    if len(secret) <= visible:
        return "*" * len(secret)
    return f"{secret[:visible]}{'*' * (len(secret) - visible)}"


class SecretMaskFilter(logging.Filter):
    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        seen: list[str] = []
        for secret in secrets:
            secret_value = (secret or "").strip()
            if secret_value and secret_value not in seen:
                seen.append(secret_value)
        self._secrets = seen

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        sanitized = message
        for secret in self._secrets:
            sanitized = sanitized.replace(secret, _mask_secret(secret))
        if sanitized != message:
            record.msg = sanitized
            record.args = ()
        return True


def _database_password(database_url: str) -> str:
    try:
        return make_url(database_url).password or ""
    except ArgumentError:
        return ""


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"}
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "root": {"level": settings.log_level.upper(), "handlers": ["console"]},
        }
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root = logging.getLogger()
    for existing in [f for f in root.filters if isinstance(f, SecretMaskFilter)]:
        root.removeFilter(existing)
    root.addFilter(SecretMaskFilter([_database_password(settings.database_url)]))
