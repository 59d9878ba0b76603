"""Error taxonomy for the archive pipeline.

Page-scoped failures (:class:`FetchError`, :class:`StoreIOError`) and
story-scoped failures (:class:`ParseError`, :class:`DateParseError`) are
recoverable: the pipeline logs them and moves on, and a later run picks up
whatever was missed.  :class:`DatabaseError` is fatal to the whole run.

Inserting a story that already exists is *not* an error, so there is no
duplicate-story exception.
"""

from __future__ import annotations

from typing import Optional


class ArchiveError(Exception):
    """Base class for every error raised by the ithappens package."""


class FetchError(ArchiveError):
    """A page could not be retrieved from the remote archive."""

    def __init__(self, page: int, cause: BaseException) -> None:
        super().__init__(f"page {page}: {cause}")
        self.page = page
        self.cause = cause


class StoreIOError(ArchiveError):
    """Reading or writing a cached page on the local filesystem failed."""

    def __init__(self, page: int, cause: BaseException) -> None:
        super().__init__(f"page {page}: {cause}")
        self.page = page
        self.cause = cause


class PageNotFoundError(StoreIOError):
    """The page is not present in the local cache."""


class ParseError(ArchiveError):
    """A story container does not match the expected markup structure."""

    def __init__(self, message: str, story_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.story_id = story_id


class DateParseError(ParseError):
    """A story date could not be converted into epoch seconds."""


class DatabaseError(ArchiveError):
    """The SQLite store failed; the run cannot continue."""
