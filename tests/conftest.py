"""Shared fixtures: synthetic feed pages and isolated databases."""

from __future__ import annotations

import sqlite3
import threading
from typing import Callable, Generator, Optional, Sequence

import pytest

from ithappens.db import SearchIndex, StoryRepository, get_connection, init_db


def _story_html(
    story_id: Optional[int] = 100,
    title: str = "Заголовок",
    datetime_attr: Optional[str] = "2022-01-15T07:30:00Z",
    date_text: Optional[str] = None,
    tags: Sequence[str] = ("Работа", "Люди"),
    paragraphs: Sequence[str] = ("Первый абзац.", "Второй абзац."),
    likes: Optional[int] = 5,
) -> str:
    """Render one ``div.story`` container shaped like the archived feed."""
    id_block = f'<div class="id"><span>{story_id}</span></div>' if story_id is not None else ""
    time_block = f'<time datetime="{datetime_attr}"></time>' if datetime_attr is not None else ""
    date_block = f'<div class="date-time">{date_text}</div>' if date_text is not None else ""
    tag_items = "".join(f'<li><a href="/tag/{t}">{t}</a></li>' for t in tags)
    text_block = "".join(f"<p>{p}</p>" for p in paragraphs)
    likes_block = (
        '<div class="actions"><div class="button-group like">'
        f'<div class="button"><div class="count">{likes}</div></div>'
        "</div></div>"
        if likes is not None
        else ""
    )
    return (
        '<div class="story">'
        f"{id_block}"
        f'<h2><a href="/story/{story_id}">{title}</a></h2>'
        f'<div class="meta">{time_block}{date_block}'
        f'<div class="tags"><ul>{tag_items}</ul></div></div>'
        f'<div class="text">{text_block}</div>'
        f"{likes_block}"
        "</div>"
    )


def _page_html(*stories: str) -> str:
    """Wrap story containers in the feed's ``body > div > div > div`` layout."""
    return (
        "<!DOCTYPE html><html><head><title>IT happens</title></head><body>"
        '<div class="wrapper"><div class="main"><div class="stories">'
        + "".join(stories)
        + "</div></div></div></body></html>"
    )


@pytest.fixture()
def story_html() -> Callable[..., str]:
    return _story_html


@pytest.fixture()
def page_html() -> Callable[..., str]:
    return _page_html


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def db_lock() -> threading.Lock:
    return threading.Lock()


@pytest.fixture()
def repository(conn: sqlite3.Connection, db_lock: threading.Lock) -> StoryRepository:
    return StoryRepository(conn, db_lock)


@pytest.fixture()
def search_index(conn: sqlite3.Connection, db_lock: threading.Lock) -> SearchIndex:
    return SearchIndex(conn, db_lock)
