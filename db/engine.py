"""
db.engine - Engine bootstrap and session factory for the term store.

An import commits once per term, and the reconciler keeps the Term
objects it has already looked up in its run cache. Sessions are therefore
built with expire_on_commit=False, so a cached Term still carries its tid
and name after later commits without another SELECT.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import config
from db.models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def _enable_sqlite_term_store(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _pragmas(dbapi_conn, _rec):
        cur = dbapi_conn.cursor()
        # WAL lets the vocabulary API read while an import is writing
        cur.execute("PRAGMA journal_mode=WAL")
        # term_fields / term_parents rows go with their term
        cur.execute("PRAGMA foreign_keys=ON")
        cur.execute(f"PRAGMA busy_timeout={int(config.DB_BUSY_TIMEOUT_MS)}")
        cur.close()


def init_db(db_url: str) -> Engine:
    """
    (Re)bind the term store to `db_url` and create any missing tables.

    Calling it again disposes the previous engine, which is how tests and
    the CLI point the store at a different database.
    """
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(db_url, echo=False, future=True)
    if db_url.startswith("sqlite"):
        _enable_sqlite_term_store(_engine)

    Base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.debug(f"Term store bound to {_engine.url!r}")
    return _engine


def get_session() -> Session:
    """New session on the term store; the caller closes it."""
    if _SessionLocal is None:
        raise RuntimeError("Term store not initialised - call init_db() first")
    return _SessionLocal()


@contextmanager
def session_scope() -> Iterator[Session]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
