# recess_poc/db/core.py

from functools import lru_cache
from urllib.parse import urlparse, parse_qsl, urlencode, urlunparse

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from recess_poc.config import settings
from recess_poc.core.logging import get_logger

log = get_logger("db")


def normalize_url(raw: str) -> str:
    """
    postgres:// → postgresql+psycopg2://, and sslmode=require for
    non-local Postgres hosts unless the URL already sets it.
    """
    url = raw.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    if url.startswith("sqlite"):
        return url

    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    is_local = host in ("localhost", "127.0.0.1", "::1")

    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if not is_local and "sslmode" not in query:
        query["sslmode"] = "require"
    return urlunparse(parsed._replace(query=urlencode(query)))


def _redacted(url: str) -> str:
    parsed = urlparse(url)
    if parsed.password:
        return url.replace(f":{parsed.password}@", ":***@", 1)
    return url


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = normalize_url(settings.resolved_database_url())
    log.info("database_url_in_use", extra={"url": _redacted(url)})

    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


def init_db() -> None:
    """
    Ensure tables exist. Called at startup in recess_poc/main.py.
    """
    from recess_poc.db import models  # noqa: F401  registers SQLModel metadata
    SQLModel.metadata.create_all(get_engine())


def get_session():
    """
    Dependency for FastAPI endpoints. The session (and its pooled
    connection) is released when the request finishes, error or not.
    """
    with Session(get_engine()) as session:
        yield session
