"""Database engine and session factory configuration."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.packages.drive.core.config import get_settings


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _configure_sqlite(engine: Engine) -> None:
    """Hand transaction control to SQLAlchemy and take the write lock at ``BEGIN``.

    pysqlite otherwise defers ``BEGIN`` until the first write; ``BEGIN IMMEDIATE``
    makes each transaction hold the database lock from its first read.
    SQLite's built-in ``lower()`` only folds ASCII, so it is replaced with a
    Unicode-aware one for case-insensitive name search.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver glue
        dbapi_connection.isolation_level = None
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver glue
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False, isolation_level: Optional[str] = None) -> Engine:
    """Create an engine for ``url`` with the locking behaviour the tree store needs."""
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _configure_sqlite(engine)
        return engine

    # ``pool_pre_ping`` keeps the connection pool healthy; ``echo`` mirrors SQL logs
    # when enabled in settings for easier debugging.
    kwargs = {"pool_pre_ping": True, "echo": echo}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level
    return create_engine(url, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


settings = get_settings()

engine = build_engine(
    settings.sql_database_url,
    echo=settings.database_echo,
    isolation_level=settings.database_isolation_level,
)
SessionLocal = build_session_factory(engine)
