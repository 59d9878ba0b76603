"""Archive pipeline - page range to searchable story database.

``Pipeline.run`` drives the whole process:

    1. Every page number in the configured range (highest first) is handed to
       a ``ThreadPoolExecutor``.  Each task fetches the page if it is not yet
       cached, reads the cached bytes, extracts the stories and inserts them.
    2. Once **all** page tasks have finished, the search index is rebuilt
       sequentially from every stored story.
    3. If a query was given, it is run against the fresh index.

Failures of one page (download, cache I/O, or any unexpected exception in its
task) or one story (markup, date) are logged and recorded in the report; they
never stop sibling tasks.  A :class:`~ithappens.errors.DatabaseError` aborts
the run.
"""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx

from ithappens.config import Settings
from ithappens.db.search import SearchHit, SearchIndex, search
from ithappens.db.stories import StoryRepository
from ithappens.errors import ArchiveError, DatabaseError
from ithappens.result import Err, Result
from ithappens.scraper.extractor import extract_page
from ithappens.scraper.fetcher import fetch_page, make_client
from ithappens.scraper.models import RawPage
from ithappens.scraper.page_store import PageStore
from ithappens.text import Stemmer

logger = logging.getLogger(__name__)

FetchFn = Callable[..., Result[RawPage, ArchiveError]]


class Mode(str, enum.Enum):
    """Where page bytes come from."""

    DOWNLOAD = "download"  # fetch missing pages, then read from the cache
    SAVED = "saved"  # read from the cache only
    NONE = "none"  # skip page processing, only rebuild the index


class Cancelled(ArchiveError):
    """Raised inside a page task once the run has been cancelled."""


@dataclass
class PageOutcome:
    page: int
    fetched: bool = False
    cached: bool = False
    stories_found: int = 0
    stories_inserted: int = 0
    skipped_stories: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PipelineReport:
    pages: List[PageOutcome] = field(default_factory=list)
    stories_indexed: int = 0
    hits: Optional[List[SearchHit]] = None

    @property
    def failed_pages(self) -> List[PageOutcome]:
        return [p for p in self.pages if p.error is not None]

    @property
    def stories_inserted(self) -> int:
        return sum(p.stories_inserted for p in self.pages)

    @property
    def skipped_stories(self) -> int:
        return sum(p.skipped_stories for p in self.pages)


class Pipeline:
    def __init__(
        self,
        config: Settings,
        repository: StoryRepository,
        page_store: PageStore,
        search_index: SearchIndex,
        stemmer: Stemmer,
        fetch: FetchFn = fetch_page,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.page_store = page_store
        self.search_index = search_index
        self.stemmer = stemmer
        self.fetch = fetch
        self.cancel_event = cancel_event or threading.Event()

    # ------------------------------------------------------------------
    # Single page
    # ------------------------------------------------------------------
    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise Cancelled("run cancelled")

    def process_page(
        self,
        page: int,
        mode: Mode,
        client: Optional[httpx.Client] = None,
    ) -> PageOutcome:
        """Fetch (if needed), extract and store one page.

        Archive errors end up on the returned outcome.  :class:`DatabaseError`
        and unexpected exceptions propagate to the caller.
        """
        outcome = PageOutcome(page=page)
        if mode is Mode.NONE:
            return outcome

        try:
            self._check_cancelled()
            if mode is Mode.DOWNLOAD and not self.page_store.exists(page):
                fetched = self.fetch(page, client=client, config=self.config)
                if isinstance(fetched, Err):
                    outcome.error = fetched.error
                    return outcome
                written = self.page_store.write(page, fetched.value.content)
                if isinstance(written, Err):
                    outcome.error = written.error
                    return outcome
                outcome.fetched = True
            elif not self.page_store.exists(page):
                # Saved mode: an uncached page is simply not there yet.
                logger.debug("Page %d is not cached, skipping", page)
                return outcome

            self._check_cancelled()
            stored = self.page_store.read(page)
            if isinstance(stored, Err):
                outcome.error = stored.error
                return outcome
            outcome.cached = True

            extraction = extract_page(stored.value)
            outcome.stories_found = len(extraction.stories)
            outcome.skipped_stories = len(extraction.errors)

            for story in extraction.stories:
                self._check_cancelled()
                if self.repository.insert(story):
                    outcome.stories_inserted += 1
        except DatabaseError:
            raise
        except ArchiveError as exc:
            outcome.error = exc

        if isinstance(outcome.error, Cancelled):
            logger.debug("Page %d cancelled", page)
        elif outcome.error is not None:
            logger.warning("Page %d failed: %s", page, outcome.error)
        else:
            logger.info(
                "Page %d: %d stories, %d new, %d skipped",
                page, outcome.stories_found, outcome.stories_inserted, outcome.skipped_stories,
            )
        return outcome

    # ------------------------------------------------------------------
    # Whole run
    # ------------------------------------------------------------------
    def ingest(self, mode: Mode) -> List[PageOutcome]:
        """Process every configured page in parallel and wait for all of them."""
        if mode is Mode.NONE:
            return []

        pages = list(self.config.pages)
        workers = max(1, self.config.max_workers)
        logger.info("Processing %d pages with %d workers (%s)", len(pages), workers, mode.value)

        outcomes: List[PageOutcome] = []
        fatal: Optional[BaseException] = None

        with make_client(self.config) as client:
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="page")
            try:
                future_to_page: dict[Future, int] = {
                    pool.submit(self.process_page, page, mode, client): page for page in pages
                }
                for future in as_completed(future_to_page):
                    try:
                        outcomes.append(future.result())
                    except DatabaseError as exc:
                        if fatal is None:
                            logger.error("Page %d hit a database error: %s", future_to_page[future], exc)
                            fatal = exc
                            self.cancel_event.set()
                    except Exception as exc:
                        page = future_to_page[future]
                        logger.exception("Page %d failed unexpectedly", page)
                        outcomes.append(PageOutcome(page=page, error=exc))
            except KeyboardInterrupt:
                logger.warning("Interrupted, cancelling pending pages")
                self.cancel_event.set()
                pool.shutdown(wait=True, cancel_futures=True)
                raise
            finally:
                pool.shutdown(wait=True)

        if fatal is not None:
            raise fatal
        outcomes.sort(key=lambda o: o.page, reverse=True)
        return outcomes

    def rebuild_index(self) -> int:
        """Re-index every stored story, lowest id first."""
        logger.info("Rebuilding search index up to story %d", self.repository.max_story_id())
        return self.search_index.rebuild(self.repository.iter_all(), self.stemmer)

    def query(self, words: str, *, stem: bool = False, by_score: bool = False) -> List[SearchHit]:
        return search(
            self.search_index.conn,
            words,
            stemmer=self.stemmer if stem else None,
            by_score=by_score,
            lock=self.search_index.lock,
        )

    def run(
        self,
        mode: Mode,
        query: Optional[str] = None,
        *,
        stem_query: bool = False,
        by_score: bool = False,
    ) -> PipelineReport:
        report = PipelineReport()
        report.pages = self.ingest(mode)
        report.stories_indexed = self.rebuild_index()
        if query is not None:
            report.hits = self.query(query, stem=stem_query, by_score=by_score)
        return report
