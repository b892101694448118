"""
Database engine configuration for synchronous SQLAlchemy access.
"""
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

engine = None
SessionLocal = None
logger = logging.getLogger(__name__)


def init_db(db_url: str):
    """Initializes the database engine and session factory."""
    global engine, SessionLocal
    url = make_url(db_url)
    logger.info("Initializing database at %s", url.render_as_string(hide_password=True))

    kwargs = {"pool_pre_ping": True, "future": True}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
        else:
            directory = os.path.dirname(os.path.abspath(url.database))
            os.makedirs(directory, exist_ok=True)

    engine = create_engine(url, **kwargs)
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    logger.info("Database engine initialized")
    return engine


def ensure_schema() -> None:
    """Create database tables if they do not exist yet.

    This is safe to run repeatedly and lets a fresh deployment initialize
    its own schema without a separate migration step.
    """
    if engine is None:
        raise RuntimeError("Database engine is not initialized. Call init_db() first.")
    from .models import Base

    Base.metadata.create_all(engine)
    logger.info("Database schema ensured (create_all executed)")
