"""
Async access to synchronous SQLAlchemy sessions.

Blocking session calls are pushed to a worker thread with anyio, so
callers on the event loop never wait on the database driver.
"""
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

import anyio
from sqlalchemy.orm import Session

from . import engine as db_engine

logger = logging.getLogger(__name__)


def _session_factory():
    # Read at call time: init_db() may run after this module is imported.
    if db_engine.SessionLocal is None:
        raise RuntimeError("Database engine is not initialized. Call init_db() first.")
    return db_engine.SessionLocal


@asynccontextmanager
async def get_db_session() -> AsyncIterator[Session]:
    """
    Yield a session that commits when the block succeeds.

    Any exception rolls the session back and propagates. The session is
    closed in every case.
    """
    session = _session_factory()()
    try:
        yield session
        await anyio.to_thread.run_sync(session.commit)
    except Exception as e:
        await anyio.to_thread.run_sync(session.rollback)
        logger.warning(f"Database session rolled back: {e!r}")
        raise
    finally:
        await anyio.to_thread.run_sync(session.close)
