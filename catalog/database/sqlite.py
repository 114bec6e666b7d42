import sqlite3
from pathlib import Path
from typing import Callable

from .schema import create_schema


def sqlite_connect_for(path: str) -> Callable[[], sqlite3.Connection]:
    """
    Connection factory for a sqlite file. Each call returns a fresh
    connection so worker threads never share one; the schema is created on
    first use.
    """
    db_path = Path(path)

    def _connect() -> sqlite3.Connection:
        return sqlite3.connect(db_path, timeout=30, isolation_level="DEFERRED")

    conn = _connect()
    try:
        create_schema(conn)
    finally:
        conn.close()
    return _connect
