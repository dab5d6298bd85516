from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from docvault.core.config import get_settings
from docvault.infra.db.base import Base

_DEFAULT_SQLITE_FILE = "docvault.db"


def normalize_database_url(raw_url: str | None) -> str:
    if not raw_url:
        default_path = Path(__file__).resolve().parents[3] / _DEFAULT_SQLITE_FILE
        return f"sqlite:///{default_path}"

    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgresql://") and "+psycopg" not in raw_url:
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    if raw_url.startswith("sqlite:///"):
        path_part = raw_url.removeprefix("sqlite:///")
        if path_part and path_part != ":memory:" and not path_part.startswith("/"):
            return f"sqlite:///{Path(path_part).resolve()}"
    return raw_url


def _enable_sqlite_busy_timeout(dbapi_connection, _record) -> None:
    # Background extraction threads write concurrently with request handlers.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    database_url = normalize_database_url(get_settings().database_url)

    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_busy_timeout)
        return engine

    return create_engine(database_url, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False, expire_on_commit=False)


def init_db() -> None:
    # Ensure ORM models are imported so metadata is populated.
    from docvault.infra.db import models as _models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
