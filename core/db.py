"""
core/db.py -- SQLAlchemy engine construction shared by every store.

SQLAlchemy provides a database-agnostic abstraction: swapping SQLite for
PostgreSQL is a DATABASE_URL change, not a rewrite. The SQLite-specific
tweaks below are skipped for every other backend.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Build an engine for db_url.

    FastAPI runs sync route handlers on a threadpool, so SQLite connections
    must be usable from threads other than the one that opened them.
    In-memory databases have no journal file, so WAL is only set on files.
    """
    is_sqlite = db_url.startswith("sqlite")
    connect_args: dict = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(db_url, connect_args=connect_args)
    if is_sqlite and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    return engine
