"""Inverted-index maintenance and keyword lookup over the ``search`` table.

Indexing
--------
``SearchIndex.index_story``
    Replaces one story's rows with freshly computed ``(term, story, count)``
    triples.

``SearchIndex.rebuild``
    Clears the table and re-indexes every story given to it, so repeated runs
    never double-count.

Querying
--------
``search``
    Sums per-story counts over the whitespace-separated query words.  Query
    words are looked up exactly as typed unless a stemmer is passed, and hits
    are ordered by story id (newest first) unless ``by_score`` is set.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import nullcontext
from typing import Iterable, NamedTuple, Optional

from ithappens.db.migrations import drop_search, init_db
from ithappens.errors import DatabaseError
from ithappens.scraper.models import Story
from ithappens.text import Stemmer, inverted_index

logger = logging.getLogger(__name__)


class SearchHit(NamedTuple):
    document: int
    score: int


# ---------------------------------------------------------------------------
# Index maintenance
# ---------------------------------------------------------------------------

class SearchIndex:
    def __init__(self, conn: sqlite3.Connection, lock: Optional[threading.Lock] = None) -> None:
        self.conn = conn
        self.lock = lock or threading.Lock()

    def _replace_rows(self, story: Story, stemmer: Stemmer) -> int:
        entries = inverted_index(story, stemmer)
        self.conn.execute("DELETE FROM search WHERE document = ?", (story.story_id,))
        self.conn.executemany(
            "INSERT INTO search (word, document, wordCount) VALUES (?, ?, ?)",
            entries,
        )
        return len(entries)

    def index_story(self, story: Story, stemmer: Stemmer) -> int:
        """Re-index one story and return the number of rows written."""
        with self.lock:
            try:
                with self.conn:
                    return self._replace_rows(story, stemmer)
            except sqlite3.Error as exc:
                raise DatabaseError(f"Cannot index story {story.story_id}: {exc}") from exc

    def clear(self) -> None:
        with self.lock:
            try:
                with self.conn:
                    self.conn.execute("DELETE FROM search")
            except sqlite3.Error as exc:
                raise DatabaseError(f"Cannot clear search table: {exc}") from exc

    def rebuild(self, stories: Iterable[Story], stemmer: Stemmer) -> int:
        """Clear the index and index every story in *stories*.

        Returns the number of stories indexed.
        """
        self.clear()
        indexed = 0
        rows = 0
        for story in stories:
            rows += self.index_story(story, stemmer)
            indexed += 1
            if indexed % 1000 == 0:
                logger.info("Indexed %d stories so far", indexed)
        logger.info("Search index rebuilt: %d stories, %d rows", indexed, rows)
        return indexed

    def drop(self) -> None:
        """Drop and recreate the ``search`` table."""
        with self.lock:
            drop_search(self.conn)
            init_db(self.conn)

    def row_count(self) -> int:
        with self.lock:
            try:
                return self.conn.execute("SELECT COUNT(*) FROM search").fetchone()[0]
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Keyword search
# ---------------------------------------------------------------------------

def search(
    conn: sqlite3.Connection,
    query: str,
    *,
    stemmer: Optional[Stemmer] = None,
    by_score: bool = False,
    lock: Optional[threading.Lock] = None,
) -> list[SearchHit]:
    """Return the stories containing any of the words in *query*.

    Each hit's score is the sum of its ``wordCount`` over all query words.

    Args:
        conn: Open DB connection.
        query: Whitespace-separated words; blank input yields ``[]``.
        stemmer: When given, query words are lowercased and stemmed like
            indexed terms.  By default they are matched verbatim.
        by_score: Order by score (desc) then story id (desc) instead of by
            story id alone.
        lock: Lock guarding *conn* when it is shared with writer threads.
    """
    words = [w for w in query.split() if w.strip()]
    scores: dict[int, int] = {}

    for word in words:
        term = stemmer.stem(word.lower()) if stemmer is not None else word
        sql = (
            "SELECT document, wordCount FROM search WHERE word = ? "
            "ORDER BY wordCount DESC, document DESC"
        )
        try:
            with lock or nullcontext():
                rows = conn.execute(sql, (term,)).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"Search for {word!r} failed: {exc}") from exc

        for document, count in rows:
            scores[document] = scores.get(document, 0) + count

    hits = [SearchHit(document, score) for document, score in scores.items()]
    if by_score:
        hits.sort(key=lambda h: (h.score, h.document), reverse=True)
    else:
        hits.sort(key=lambda h: h.document, reverse=True)
    return hits
