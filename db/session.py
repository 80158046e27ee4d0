"""
SQLAlchemy engine and session factory.

The connection URL comes from ``ServerConfig.database_url`` (itself read
from ``LIFE_DUMP_DATABASE_URL`` / ``DATABASE_URL``); nothing here reads the
environment.

SQLite URLs get ``check_same_thread=False`` because store calls run in a
worker thread, plus ``PRAGMA foreign_keys=ON`` so task rows cannot point at
missing projects.
"""

from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker


def create_engine_for(url: str) -> Engine:
    """Build an engine for ``url`` with pool settings suited to its backend."""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
