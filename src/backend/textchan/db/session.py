from __future__ import annotations

from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from textchan.core.config import Settings
from textchan.db.base import Base


def create_db_engine(settings: Settings) -> Engine:
    database_url = settings.database_url
    engine_kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.database_echo,
    }
    if settings.is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(database_url, **engine_kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    # Registers the mapped tables on Base.metadata.
    import textchan.models  # noqa: F401

    Base.metadata.create_all(engine)
