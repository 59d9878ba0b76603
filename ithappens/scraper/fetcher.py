"""HTTP fetcher for archived feed pages."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ithappens.config import Settings, settings
from ithappens.errors import FetchError
from ithappens.result import Err, Ok, Result
from ithappens.scraper.models import RawPage

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (compatible; ithappens-archive/1.0; +https://ithappens.me)"
    )
}


def page_url(page: int, config: Optional[Settings] = None) -> str:
    """Return the snapshot URL of feed page *page*."""
    config = config or settings
    base = config.archive_base.rstrip("/")
    site = config.source_site.rstrip("/")
    return f"{base}/{config.snapshot_id}/{site}/page/{page}"


def make_client(config: Optional[Settings] = None) -> httpx.Client:
    """Build an ``httpx.Client`` that can be shared by every worker thread."""
    config = config or settings
    return httpx.Client(
        headers=_DEFAULT_HEADERS,
        timeout=config.request_timeout,
        follow_redirects=True,
    )


def fetch_page(
    page: int,
    client: Optional[httpx.Client] = None,
    config: Optional[Settings] = None,
) -> Result[RawPage, FetchError]:
    """Download page *page* with a single GET request.

    Transport failures, timeouts and 4xx/5xx responses are returned as
    ``Err(FetchError)``; nothing is retried here.  When *client* is omitted a
    short-lived client is opened for this one request.
    """
    url = page_url(page, config)
    logger.info("Downloading page %d from %s", page, url)

    try:
        if client is None:
            with make_client(config) as own_client:
                response = own_client.get(url)
                response.raise_for_status()
        else:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Download of page %d failed: %s", page, exc)
        return Err(FetchError(page, exc))

    return Ok(RawPage(page=page, content=response.content))
