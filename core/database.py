"""
core/database.py -- SQLAlchemy engine construction shared by every store.

Both auth/store.py and resources/store.py build their engine here so the
SQLite-specific tweaks are applied in exactly one place.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or resources/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine for db_url.

    SQLite requires check_same_thread=False because FastAPI runs sync route
    handlers on a thread pool and a pooled connection may hop threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
