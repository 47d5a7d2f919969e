"""
Database engine and session setup.

SQLite by default; any SQLAlchemy URL via DATABASE_URL. Statements slower
than SLOW_QUERY_THRESHOLD_MS are logged on the ``qbank.database.queries``
logger (DEBUG_QUERIES lowers it to DEBUG).
"""

import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

query_logger = logging.getLogger("qbank.database.queries")
query_logger.setLevel(logging.DEBUG if os.getenv("DEBUG_QUERIES") else logging.WARNING)

SLOW_QUERY_THRESHOLD_MS = int(os.getenv("SLOW_QUERY_THRESHOLD_MS", "100"))


def normalize_database_url(url: str) -> str:
    """Hosted Postgres hands out postgres:// URLs; SQLAlchemy wants postgresql://."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Schedulers and request handlers share the file across threads
        return create_engine(url, connect_args={"check_same_thread": False}, pool_pre_ping=True)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )


def _shorten(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def install_query_timing(target: Engine, threshold_ms: float) -> None:
    """Log every statement on ``target`` that runs longer than ``threshold_ms``."""

    def before(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("qbank_query_start", []).append(time.perf_counter())

    def after(conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get("qbank_query_start")
        if not starts:
            return
        elapsed_ms = (time.perf_counter() - starts.pop()) * 1000
        if elapsed_ms >= threshold_ms:
            query_logger.warning(
                f"SLOW QUERY ({elapsed_ms:.2f}ms): {_shorten(statement, 500)} "
                f"| params={_shorten(str(parameters), 200)}"
            )

    event.listen(target, "before_cursor_execute", before)
    event.listen(target, "after_cursor_execute", after)


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./nursing_qbank.db"))

engine = build_engine(DATABASE_URL)
install_query_timing(engine, SLOW_QUERY_THRESHOLD_MS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
