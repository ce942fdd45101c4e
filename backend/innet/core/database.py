"""
Database configuration and session management
"""
import time
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from innet.core.config import get_settings
from innet.core.logging_config import LoggingConfig
from innet.core.metrics import db_queries_total, db_query_duration_seconds

# Lazy initialization - don't create engine at module level
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Base class for models (can be created immediately)
Base = declarative_base()


def _statement_table(operation: str, words) -> str:
    """Best-effort table name for a SQL statement"""
    keyword = {"select": "FROM", "delete": "FROM", "insert": "INTO"}.get(operation)
    if operation == "update" and len(words) > 1:
        return words[1].lower().strip(';"')
    if keyword is None:
        return "unknown"
    for i, word in enumerate(words):
        if word.upper() == keyword and i + 1 < len(words):
            return words[i + 1].lower().strip(';"')
    return "unknown"


def setup_db_metrics(engine: Engine) -> None:
    """Setup SQLAlchemy event listeners for database metrics"""

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault('query_start_time', []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if not conn.info.get('query_start_time'):
            return
        duration = time.time() - conn.info['query_start_time'].pop()
        words = statement.strip().split()
        operation = words[0].lower() if words else "unknown"
        table = _statement_table(operation, words)
        db_queries_total.labels(operation=operation, table=table).inc()
        db_query_duration_seconds.labels(operation=operation, table=table).observe(duration)


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine with connect args suited to the backend"""
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 5}
    elif "postgresql" in database_url:
        connect_args = {
            "connect_timeout": 5,
            "options": "-c statement_timeout=5000",
        }
    else:
        connect_args = {}
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
        **kwargs
    )
    setup_db_metrics(engine)
    return engine


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        LoggingConfig.configure()

        pool_kwargs = {}
        if not settings.database_url.startswith("sqlite"):
            pool_kwargs = {
                "pool_size": settings.database_pool_size,
                "max_overflow": settings.database_max_overflow,
            }
        _engine = build_engine(settings.database_url, echo=settings.log_sqlalchemy, **pool_kwargs)

    return _engine


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session
    """
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
