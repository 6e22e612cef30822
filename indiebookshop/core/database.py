"""
Database connection and session management.

Production runs against the hosted Postgres database; local development
and tests may point DATABASE_URL at SQLite, which needs a different pool.
"""
import logging
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from indiebookshop.core.config import get_settings
from indiebookshop.core.models import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def engine_options(database_url: str) -> Dict[str, Any]:
    """
    Keyword arguments for create_engine() for the given URL.

    In-memory SQLite keeps a single shared connection so every session
    sees the same tables.
    """
    if database_url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options

    return {
        "poolclass": QueuePool,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
    }


def get_engine() -> Engine:
    """Shared engine, created on first use from DATABASE_URL."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        _engine = create_engine(url, **engine_options(url))
        logger.info(f"Database engine created ({_engine.dialect.name})")
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a session that is closed after the request.

    Usage:
        @router.get("/bookshops")
        def list_bookshops(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create bookstores, features and events if missing. Idempotent."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Directory tables ready: {', '.join(sorted(Base.metadata.tables))}")


def check_connection() -> None:
    """Run a trivial query; raises if the database is unreachable."""
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


def dispose_engine() -> None:
    """Close pooled connections and forget the engine (shutdown, tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.debug("Database engine disposed")
    _engine = None
    _SessionLocal = None
