# ticket_invoice/db.py
"""SQLAlchemy engine and session handling."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from . import config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


SessionLocal = sessionmaker(expire_on_commit=False)

_engine: Engine | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """Create the process-wide engine and bind the session factory to it."""
    global _engine
    url = url or config.DATABASE_URL

    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        db_file = url.split("///", 1)[-1] if "///" in url else ""
        if db_file and db_file != ":memory:":
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    SessionLocal.configure(bind=engine)
    _engine = engine
    logger.info("Database engine ready (%s)", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine


def create_all(engine: Optional[Engine] = None) -> None:
    """Create every table that does not exist yet."""
    from . import entities  # noqa: F401  (registers the mappers)

    Base.metadata.create_all(engine or get_engine())


def get_session() -> Iterator[Session]:
    """One session per request; endpoints commit, errors roll back."""
    get_engine()
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
