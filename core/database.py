"""
core/database.py -- Engine construction shared by auth/store.py and fleet/store.py.

Both repositories use SQLAlchemy Core against the same database URL. SQLite
needs the same tweaks in each, so they live here once.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or fleet/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str, timeout: Optional[float] = None) -> Engine:
    """Create an engine for db_url.

    SQLite only:
      check_same_thread=False -- FastAPI runs sync handlers in a thread pool.
      timeout -- seconds a connection waits on a locked database before
          raising, so a stuck writer surfaces as a 500 instead of a hung request.
      WAL mode for file databases (in-memory databases do not support it).
    """
    connect_args: dict = {}
    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
        if timeout is not None:
            connect_args["timeout"] = timeout
    engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    if is_sqlite and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def iso(dt: datetime) -> str:
    """UTC ISO 8601 at second precision, so stored timestamps compare as text."""
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def now_iso() -> str:
    return iso(datetime.now(timezone.utc))
