"""Pipeline tests - per-page processing, the parallel run and re-runs.

Network access is mocked with ``respx``; pages are cached under ``tmp_path``
and stories go to the in-memory database from ``conftest.py``.
"""

from __future__ import annotations

import threading
from pathlib import Path

import httpx
import pytest
import respx

from ithappens.config import Settings
from ithappens.db.search import SearchHit, SearchIndex
from ithappens.db.stories import StoryRepository
from ithappens.errors import DatabaseError, FetchError, PageNotFoundError, StoreIOError
from ithappens.pipeline import Cancelled, Mode, Pipeline
from ithappens.result import Err, Ok
from ithappens.scraper.fetcher import page_url
from ithappens.scraper.models import RawPage
from ithappens.scraper.page_store import PageStore
from ithappens.text import Stemmer


@pytest.fixture()
def config(tmp_path: Path) -> Settings:
    return Settings(
        workspace_dir=tmp_path,
        download_dir_override=None,
        db_path_override=None,
        first_page=1,
        last_page=3,
        max_workers=3,
    )


@pytest.fixture()
def page_store(config: Settings) -> PageStore:
    return PageStore(config.download_dir)


@pytest.fixture()
def pipeline(config, repository, page_store, search_index) -> Pipeline:
    return Pipeline(config, repository, page_store, search_index, Stemmer())


@pytest.fixture()
def feed(story_html, page_html) -> dict[int, bytes]:
    """Three pages; page 1 repeats story 101 from page 3 verbatim."""
    return {
        3: page_html(
            story_html(story_id=101, paragraphs=("Кот сидел на окне.",)),
            story_html(story_id=100, paragraphs=("Собака и кот.", "Кот спал.")),
        ).encode("utf-8"),
        2: page_html(
            story_html(story_id=50, paragraphs=("Сервер упал.",)),
            story_html(story_id=None),
        ).encode("utf-8"),
        1: page_html(
            story_html(story_id=101, paragraphs=("Кот сидел на окне.",)),
            story_html(story_id=1, paragraphs=("Первая история.",)),
        ).encode("utf-8"),
    }


def _mock_feed(
    router: respx.MockRouter, config: Settings, feed: dict[int, bytes]
) -> dict[int, respx.Route]:
    return {
        page: router.get(page_url(page, config)).mock(return_value=httpx.Response(200, content=body))
        for page, body in feed.items()
    }


# ---------------------------------------------------------------------------
# process_page
# ---------------------------------------------------------------------------

class TestProcessPage:
    def test_download_caches_and_ingests(self, pipeline, config, feed, page_store, repository) -> None:
        with respx.mock(assert_all_called=False) as mock:
            _mock_feed(mock, config, feed)
            outcome = pipeline.process_page(3, Mode.DOWNLOAD)

        assert outcome.ok
        assert outcome.fetched and outcome.cached
        assert outcome.stories_found == 2
        assert outcome.stories_inserted == 2
        assert page_store.read(3).value == feed[3]  # type: ignore[union-attr]
        assert repository.exists(100) and repository.exists(101)
        assert repository.max_story_id() == 101

    def test_second_download_is_a_cache_hit(self, pipeline, config, feed) -> None:
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_feed(mock, config, feed)
            first = pipeline.process_page(3, Mode.DOWNLOAD)
            second = pipeline.process_page(3, Mode.DOWNLOAD)

        assert routes[3].call_count == 1
        assert first.fetched is True
        assert second.fetched is False
        assert second.stories_found == 2
        assert second.stories_inserted == 0

    def test_malformed_story_is_counted_not_fatal(self, pipeline, config, feed, repository) -> None:
        with respx.mock(assert_all_called=False) as mock:
            _mock_feed(mock, config, feed)
            outcome = pipeline.process_page(2, Mode.DOWNLOAD)

        assert outcome.ok
        assert outcome.stories_found == 1
        assert outcome.skipped_stories == 1
        assert repository.count() == 1

    def test_fetch_failure_is_recorded(self, pipeline, config, page_store) -> None:
        with respx.mock:
            respx.get(page_url(3, config)).mock(return_value=httpx.Response(503))
            outcome = pipeline.process_page(3, Mode.DOWNLOAD)

        assert isinstance(outcome.error, FetchError)
        assert outcome.error.page == 3
        assert page_store.exists(3) is False

    def test_saved_mode_never_fetches(self, pipeline, config, page_store, feed, repository) -> None:
        page_store.write(3, feed[3])
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_feed(mock, config, feed)
            outcome = pipeline.process_page(3, Mode.SAVED)
            missing = pipeline.process_page(2, Mode.SAVED)

        assert not mock.calls
        assert all(route.call_count == 0 for route in routes.values())
        assert outcome.stories_inserted == 2
        assert missing.ok and missing.cached is False
        assert repository.count() == 2

    def test_unreadable_cache_is_recorded(self, pipeline, page_store, monkeypatch) -> None:
        page_store.write(3, b"<html></html>")
        monkeypatch.setattr(
            page_store, "read", lambda page: Err(PageNotFoundError(page, OSError("gone")))
        )
        outcome = pipeline.process_page(3, Mode.SAVED)
        assert isinstance(outcome.error, PageNotFoundError)

    def test_none_mode_does_nothing(self, pipeline, page_store, feed, repository) -> None:
        page_store.write(3, feed[3])
        outcome = pipeline.process_page(3, Mode.NONE)
        assert outcome.cached is False
        assert repository.count() == 0

    def test_cancelled_before_start(self, pipeline, config, feed) -> None:
        pipeline.cancel_event.set()
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_feed(mock, config, feed)
            outcome = pipeline.process_page(3, Mode.DOWNLOAD)

        assert isinstance(outcome.error, Cancelled)
        assert routes[3].call_count == 0


# ---------------------------------------------------------------------------
# Whole run
# ---------------------------------------------------------------------------

class TestRun:
    def test_end_to_end(self, pipeline, config, feed, repository) -> None:
        with respx.mock as mock:
            _mock_feed(mock, config, feed)
            report = pipeline.run(Mode.DOWNLOAD, "кот", stem_query=True)

        assert [p.page for p in report.pages] == [3, 2, 1]
        assert report.failed_pages == []
        assert report.stories_inserted == 4
        assert report.skipped_stories == 1
        assert report.stories_indexed == 4
        assert repository.count() == 4
        assert report.hits == [SearchHit(101, 1), SearchHit(100, 2)]

    def test_rerun_is_idempotent(self, pipeline, config, feed, repository, search_index) -> None:
        with respx.mock as mock:
            routes = _mock_feed(mock, config, feed)
            pipeline.run(Mode.DOWNLOAD)
            rows_after_first = search_index.row_count()
            report = pipeline.run(Mode.DOWNLOAD)

        assert all(route.call_count == 1 for route in routes.values())
        assert report.stories_inserted == 0
        assert repository.count() == 4
        assert search_index.row_count() == rows_after_first

    def test_failed_page_does_not_stop_siblings(self, pipeline, config, feed, repository) -> None:
        with respx.mock:
            respx.get(page_url(3, config)).mock(side_effect=httpx.ConnectTimeout("timed out"))
            respx.get(page_url(2, config)).mock(return_value=httpx.Response(200, content=feed[2]))
            respx.get(page_url(1, config)).mock(return_value=httpx.Response(200, content=feed[1]))
            report = pipeline.run(Mode.DOWNLOAD)

        assert [p.page for p in report.failed_pages] == [3]
        assert repository.count() == 3

    def test_failed_page_is_picked_up_on_rerun(self, pipeline, config, feed, repository) -> None:
        with respx.mock:
            respx.get(page_url(3, config)).mock(
                side_effect=[httpx.Response(500), httpx.Response(200, content=feed[3])]
            )
            respx.get(page_url(2, config)).mock(return_value=httpx.Response(200, content=feed[2]))
            respx.get(page_url(1, config)).mock(return_value=httpx.Response(200, content=feed[1]))
            first = pipeline.run(Mode.DOWNLOAD)
            second = pipeline.run(Mode.DOWNLOAD)

        assert [p.page for p in first.failed_pages] == [3]
        assert second.failed_pages == []
        assert repository.exists(100)

    def test_none_mode_only_reindexes(self, pipeline, repository, feed, page_store) -> None:
        page_store.write(3, feed[3])
        report = pipeline.run(Mode.NONE)
        assert report.pages == []
        assert report.stories_indexed == 0

    def test_database_error_aborts_run(self, config, conn, page_store, feed, db_lock) -> None:
        class BrokenRepository(StoryRepository):
            def insert(self, story):
                raise DatabaseError("disk I/O error")

        for page, body in feed.items():
            page_store.write(page, body)

        pipeline = Pipeline(
            config,
            BrokenRepository(conn, db_lock),
            page_store,
            SearchIndex(conn, db_lock),
            Stemmer(),
        )
        with pytest.raises(DatabaseError, match="disk I/O error"):
            pipeline.run(Mode.SAVED)
        assert pipeline.cancel_event.is_set()

    def test_pages_run_in_parallel(self, config, repository, page_store, search_index, feed) -> None:
        """All three pages are in flight at once with three workers."""
        barrier = threading.Barrier(3, timeout=5)

        def fetch(page, client=None, config=None):
            barrier.wait()
            return Ok(RawPage(page=page, content=feed[page]))

        pipeline = Pipeline(config, repository, page_store, search_index, Stemmer(), fetch=fetch)
        report = pipeline.run(Mode.DOWNLOAD)
        assert report.failed_pages == []
        assert repository.count() == 4

    def test_unexpected_error_is_isolated_to_its_page(
        self, config, repository, page_store, search_index, feed
    ) -> None:
        def fetch(page, client=None, config=None):
            if page == 2:
                raise RuntimeError("decoder blew up")
            return Ok(RawPage(page=page, content=feed[page]))

        pipeline = Pipeline(config, repository, page_store, search_index, Stemmer(), fetch=fetch)
        report = pipeline.run(Mode.DOWNLOAD)

        assert [p.page for p in report.pages] == [3, 2, 1]
        assert [p.page for p in report.failed_pages] == [2]
        assert isinstance(report.failed_pages[0].error, RuntimeError)
        assert repository.count() == 3
        assert not pipeline.cancel_event.is_set()

    def test_uninspectable_cache_is_reported_per_page(
        self, config, repository, search_index, tmp_path
    ) -> None:
        store = PageStore(tmp_path / ("x" * 300))
        pipeline = Pipeline(config, repository, store, search_index, Stemmer())
        report = pipeline.run(Mode.SAVED)

        assert [p.page for p in report.failed_pages] == [3, 2, 1]
        assert all(isinstance(p.error, StoreIOError) for p in report.failed_pages)
        assert repository.count() == 0
