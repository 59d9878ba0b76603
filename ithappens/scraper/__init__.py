"""Scraper package - page fetch, cache & story extraction."""

from ithappens.scraper.extractor import extract_page, extract_stories
from ithappens.scraper.fetcher import fetch_page, make_client, page_url
from ithappens.scraper.models import RawPage, Story
from ithappens.scraper.page_store import PageStore

__all__ = [
    "fetch_page",
    "make_client",
    "page_url",
    "extract_page",
    "extract_stories",
    "PageStore",
    "RawPage",
    "Story",
]
