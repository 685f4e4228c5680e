"""Helpers for configuring SQLAlchemy engine and session factories."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from ..config import get_settings
from . import Base


def _unicode_lower(value: object) -> object:
    return value.lower() if isinstance(value, str) else value


def get_engine(database_url: str | None = None, **kwargs: object) -> Engine:
    """Create a SQLAlchemy engine.

    Args:
        database_url: Optional database URL. When ``None`` the configured
            ``DATABASE_URL`` is used.
        **kwargs: Additional keyword arguments forwarded to
            :func:`sqlalchemy.create_engine`.

    Returns:
        Configured SQLAlchemy :class:`~sqlalchemy.engine.Engine` instance.
    """

    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            dbapi_connection.execute("PRAGMA foreign_keys=ON")
            # SQLite's built-in lower() only folds ASCII.
            dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return engine


_FACTORIES: dict[str, sessionmaker[Session]] = {}


def get_sessionmaker(database_url: str | None = None) -> sessionmaker[Session]:
    """Return a session factory bound to the configured engine.

    Factories are cached per URL so request handlers share one engine and its
    connection pool.
    """

    url = database_url or get_settings().database_url
    factory = _FACTORIES.get(url)
    if factory is None:
        engine = get_engine(database_url=url)
        factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
        _FACTORIES[url] = factory
    return factory


def dispose_engines() -> None:
    """Dispose cached engines; used by tests that switch databases."""

    for factory in _FACTORIES.values():
        factory.kw["bind"].dispose()
    _FACTORIES.clear()


def init_db(database_url: str | None = None) -> Engine:
    """Create the inbox tables if they do not exist yet."""

    factory = get_sessionmaker(database_url)
    engine = factory.kw["bind"]
    Base.metadata.create_all(engine)
    return engine


@contextmanager
def session_scope(database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = get_sessionmaker(database_url)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "dispose_engines",
    "get_engine",
    "get_sessionmaker",
    "init_db",
    "session_scope",
]
