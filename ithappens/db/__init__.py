"""Database layer package.

Public re-exports so callers can write::

    from ithappens.db import get_connection, init_db
    from ithappens.db import StoryRepository, SearchIndex
"""

from ithappens.db.connection import get_connection
from ithappens.db.migrations import drop_search, init_db
from ithappens.db.search import SearchHit, SearchIndex
from ithappens.db.stories import StoryRepository

__all__ = [
    "get_connection",
    "init_db",
    "drop_search",
    "StoryRepository",
    "SearchIndex",
    "SearchHit",
]
