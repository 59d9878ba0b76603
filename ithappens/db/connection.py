"""SQLite connection factory.

Usage::

    from ithappens.db.connection import get_connection

    conn = get_connection()
    cursor = conn.execute("SELECT 1")
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from ithappens.config import settings
from ithappens.errors import DatabaseError


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    The connection is opened with ``check_same_thread=False`` because the
    pipeline shares it between worker threads; callers serialize access
    through :class:`~ithappens.db.stories.StoryRepository`'s lock.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.

    Raises:
        DatabaseError: If the database cannot be opened.
    """
    path = db_path or settings.db_path

    try:
        # Create parent directory if needed (no-op for `:memory:`)
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
    except (OSError, sqlite3.Error) as exc:
        raise DatabaseError(f"Cannot open database {path}: {exc}") from exc

    return conn
