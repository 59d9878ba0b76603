"""ithappens CLI - archive the story feed and search it.

Usage:
    python cli/main.py --help

    ithappens --download                 Fetch missing pages, ingest, re-index
    ithappens --saved                    Ingest cached pages only, re-index
    ithappens --dropsearch               Drop the search table before re-indexing
    ithappens --search кот собака        Re-index, then search

Flags combine, e.g. ``ithappens --saved --search кот``.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from ithappens.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import dataclasses
import logging
import threading
from typing import List, Optional

import typer

from ithappens.config import settings
from ithappens.db import SearchIndex, StoryRepository, get_connection, init_db
from ithappens.errors import DatabaseError
from ithappens.pipeline import Mode, Pipeline, PipelineReport
from ithappens.scraper.page_store import PageStore
from ithappens.text import Stemmer

app = typer.Typer(
    name="ithappens",
    help="Archive ithappens.me stories from the Wayback Machine and search them.",
    add_completion=False,
)

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        force=True,
    )
    # httpx logs every request at INFO; the fetcher already does that.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _print_report(report: PipelineReport) -> None:
    if report.pages:
        typer.echo(
            f"[ingest] {len(report.pages)} pages, "
            f"{report.stories_inserted} new stories, "
            f"{report.skipped_stories} malformed stories skipped, "
            f"{len(report.failed_pages)} pages failed"
        )
        for outcome in report.failed_pages:
            typer.echo(f"  page {outcome.page}: {outcome.error}")
    typer.echo(f"[index] {report.stories_indexed} stories indexed")


def _print_hits(report: PipelineReport, repository: StoryRepository, query: str) -> None:
    if not report.hits:
        typer.echo(f"[search] No results for {query!r}.")
        return
    typer.echo(f"[search] {len(report.hits)} results for {query!r}:")
    for hit in report.hits:
        story = repository.get(hit.document)
        title = story.title if story else ""
        typer.echo(f"  {hit.document}  score={hit.score}  {title!r}")


@app.command()
def main(
    ctx: typer.Context,
    words: Optional[List[str]] = typer.Argument(None, help="Words to search for (with --search)."),
    download: bool = typer.Option(False, "--download", help="Download missing pages from the Wayback Machine."),
    saved: bool = typer.Option(False, "--saved", help="Read pages from the local cache only."),
    dropsearch: bool = typer.Option(False, "--dropsearch", help="Drop the search table before re-indexing."),
    search: bool = typer.Option(False, "--search", help="Search stories containing WORDS."),
    first_page: Optional[int] = typer.Option(None, "--first-page", help="Lowest page number to process."),
    last_page: Optional[int] = typer.Option(None, "--last-page", help="Highest page number to process."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Number of parallel page workers."),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database file."),
    saved_dir: Optional[Path] = typer.Option(None, "--saved-dir", help="Directory of cached page files."),
    stem_query: bool = typer.Option(False, "--stem-query", help="Stem search words like indexed text."),
    by_score: bool = typer.Option(False, "--by-score", help="Order results by score instead of story id."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Archive, index and search ithappens.me stories."""
    if not (download or saved or dropsearch or search):
        typer.echo(ctx.get_help())
        raise typer.Exit(0)
    if download and saved:
        typer.echo("[ithappens] --download and --saved are mutually exclusive.", err=True)
        raise typer.Exit(2)

    _configure_logging(verbose)

    overrides = {
        "first_page": first_page,
        "last_page": last_page,
        "max_workers": workers,
        "db_path_override": db,
        "download_dir_override": saved_dir,
    }
    config = dataclasses.replace(
        settings, **{k: v for k, v in overrides.items() if v is not None}
    )

    if download:
        mode = Mode.DOWNLOAD
    elif saved:
        mode = Mode.SAVED
    else:
        mode = Mode.NONE
    query = " ".join(words or []) if search else None

    stemmer = Stemmer()
    conn = None
    try:
        conn = get_connection(config.db_path)
        init_db(conn)
        lock = threading.Lock()
        repository = StoryRepository(conn, lock)
        search_index = SearchIndex(conn, lock)
        if dropsearch:
            typer.echo("[index] Dropping search table")
            search_index.drop()

        pipeline = Pipeline(
            config,
            repository,
            PageStore(config.download_dir),
            search_index,
            stemmer,
        )
        report = pipeline.run(mode, query, stem_query=stem_query, by_score=by_score)
        _print_report(report)
        if query is not None:
            _print_hits(report, repository, query)
    except DatabaseError as exc:
        typer.echo(f"[ithappens] Database error: {exc}", err=True)
        raise typer.Exit(1)
    finally:
        if conn is not None:
            conn.close()


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
