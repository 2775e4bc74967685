"""
Engine, session factory and the request-scoped session dependency.

PostgreSQL in production; DATABASE_URL may point at any SQLAlchemy URL
(sqlite is used for local runs and the test suite).
"""
import logging
import time
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from core.config import settings

logger = logging.getLogger(__name__)

SESSION_CONNECT_ATTEMPTS = 3


def build_database_url() -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return (
        f"postgresql://{settings.POSTGRES_USER}:{settings.POSTGRES_PASSWORD}"
        f"@{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
    )


def engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # Requests run in the threadpool; concurrent debits wait on the file lock.
        return {"connect_args": {"check_same_thread": False, "timeout": 30}, "echo": settings.DEBUG}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
        "echo": settings.DEBUG,
    }


DATABASE_URL = build_database_url()
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


def _open_session() -> Session:
    attempt = 1
    while True:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except OperationalError as e:
            db.close()
            if attempt >= SESSION_CONNECT_ATTEMPTS:
                logger.error(f"Database unavailable after {attempt} attempts: {e}")
                raise
            logger.warning(f"Database connection attempt {attempt} failed, retrying")
            time.sleep(0.1 * 2 ** (attempt - 1))
            attempt += 1


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: one session per request.

    Committed when the handler returns, rolled back if it raises.
    """
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
