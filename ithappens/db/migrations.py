"""Database initialisation helpers.

``init_db(conn)`` is idempotent - safe to call on an existing database.
``drop_search(conn)`` throws the inverted index away so it can be recreated.
"""

from __future__ import annotations

import sqlite3

from ithappens.config import settings
from ithappens.errors import DatabaseError


def _read_schema() -> str:
    return settings.schema_path.read_text(encoding="utf-8")


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``stories`` and ``search`` tables and their indexes.

    Every DDL statement uses ``IF NOT EXISTS`` so calling this on an existing
    database is safe.

    Raises:
        DatabaseError: If the schema cannot be applied.
    """
    try:
        conn.executescript(_read_schema())
    except sqlite3.Error as exc:
        raise DatabaseError(f"Cannot initialise schema: {exc}") from exc


def drop_search(conn: sqlite3.Connection) -> None:
    """Drop the ``search`` table.  Run :func:`init_db` afterwards to recreate it."""
    try:
        with conn:
            conn.execute("DROP TABLE IF EXISTS search")
    except sqlite3.Error as exc:
        raise DatabaseError(f"Cannot drop search table: {exc}") from exc
