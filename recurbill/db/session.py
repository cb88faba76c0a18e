"""Database engine setup.

For test runs (ENV=test) we use a synchronous in-memory SQLite database when
DATABASE_URL is unset or points at ``:memory:``. The test suite rebinds
``SessionLocal`` to its own StaticPool engine in ``conftest.py``.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from recurbill.core.config import settings


def enable_sqlite_savepoints(sqlite_engine: Engine) -> Engine:
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest correctly."""

    @event.listens_for(sqlite_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


raw_url = settings.DATABASE_URL

use_sqlite_memory = settings.ENV.lower() == "test" and (not raw_url or raw_url.endswith(":memory:"))

if use_sqlite_memory:
    raw_url = "sqlite:///file:test_db?mode=memory&cache=shared&uri=true"  # shared cache enables multiple connections
    engine = enable_sqlite_savepoints(create_engine(raw_url, future=True))
elif raw_url and raw_url.startswith("postgresql"):
    # Pool recycle: recycle connections after 1 hour to prevent stale connections
    # Pool pre-ping: verify connection health before using
    engine = create_engine(
        raw_url,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )
else:
    raw_url = raw_url or "sqlite:///./storage/dev.db"
    engine = create_engine(raw_url, future=True)
    if raw_url.startswith("sqlite"):
        enable_sqlite_savepoints(engine)
SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
