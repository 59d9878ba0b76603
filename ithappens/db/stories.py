"""Insert-if-absent storage for the ``stories`` table."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Iterator, Optional

from ithappens.errors import DatabaseError
from ithappens.scraper.models import Story

logger = logging.getLogger(__name__)

TAG_SEPARATOR = ", "


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_story(row: sqlite3.Row) -> Story:
    tags = row["tags"] or ""
    return Story(
        story_id=row["storyId"],
        title=row["title"] or "",
        timestamp=row["datetime"],
        tags=tags.split(TAG_SEPARATOR) if tags else [],
        text=row["text"] or "",
        likes=row["likes"],
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class StoryRepository:
    """Story records keyed by story id.

    One SQLite connection is shared by all pipeline workers, so every
    statement runs while holding :attr:`lock`.  The search index takes the
    same lock when it writes.
    """

    def __init__(self, conn: sqlite3.Connection, lock: Optional[threading.Lock] = None) -> None:
        self.conn = conn
        self.lock = lock or threading.Lock()

    def exists(self, story_id: int) -> bool:
        with self.lock:
            row = self._fetchone("SELECT 1 FROM stories WHERE storyId = ?", (story_id,))
        return row is not None

    def insert(self, story: Story) -> bool:
        """Store *story* unless its id is already present.

        Returns ``True`` when a row was written and ``False`` when the id was
        already stored; the existing row is left untouched either way.

        Raises:
            DatabaseError: On any SQLite failure.
        """
        with self.lock:
            try:
                with self.conn:
                    cursor = self.conn.execute(
                        """
                        INSERT OR IGNORE INTO stories (storyId, title, datetime, tags, text, likes)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            story.story_id,
                            story.title,
                            story.timestamp,
                            TAG_SEPARATOR.join(story.tags),
                            story.text,
                            story.likes,
                        ),
                    )
            except sqlite3.Error as exc:
                raise DatabaseError(f"Cannot insert story {story.story_id}: {exc}") from exc

        inserted = cursor.rowcount == 1
        if inserted:
            logger.info("Stored story %d", story.story_id)
        return inserted

    def max_story_id(self) -> int:
        """Return the highest stored story id (0 if the table is empty)."""
        with self.lock:
            row = self._fetchone("SELECT COALESCE(MAX(storyId), 0) FROM stories")
        return row[0]

    def count(self) -> int:
        with self.lock:
            row = self._fetchone("SELECT COUNT(*) FROM stories")
        return row[0]

    def get(self, story_id: int) -> Optional[Story]:
        """Fetch a single story.  Returns ``None`` if not found."""
        with self.lock:
            row = self._fetchone("SELECT * FROM stories WHERE storyId = ?", (story_id,))
        return _row_to_story(row) if row else None

    def iter_all(self, batch_size: int = 500) -> Iterator[Story]:
        """Yield every story in ascending id order.

        Rows are read in keyset-paginated batches so the lock is never held
        while the caller processes a story.  Each call starts from the
        beginning.
        """
        last_id = 0
        while True:
            with self.lock:
                rows = self._fetchall(
                    "SELECT * FROM stories WHERE storyId > ? ORDER BY storyId LIMIT ?",
                    (last_id, batch_size),
                )
            if not rows:
                return
            for row in rows:
                yield _row_to_story(row)
            last_id = rows[-1]["storyId"]

    # ------------------------------------------------------------------
    # Statement helpers (caller holds the lock)
    # ------------------------------------------------------------------
    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc
