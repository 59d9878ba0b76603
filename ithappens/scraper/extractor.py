"""Story extraction: turns one feed page into :class:`Story` records.

Every page lists its stories as ``div.story`` containers.  Each container is
parsed independently; a container that does not match the expected structure
is logged and skipped without affecting its siblings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from ithappens.errors import ParseError
from ithappens.scraper.dates import parse_iso_instant, parse_russian_date
from ithappens.scraper.models import Story

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------
CONTAINER_SELECTOR = "body > div > div > div > div.story"
STORY_ID_SELECTOR = "div.id > span"
TITLE_SELECTOR = "h2 > a"
DATETIME_SELECTOR = "div.meta > time"
DATE_SELECTOR = "div.meta > div.date-time"
TAGS_SELECTOR = "div.meta > div > ul > li > a"
TEXT_SELECTOR = "div.text > p"
LIKES_SELECTOR = "div.actions > div.button-group.like > div > div"


@dataclass
class Extraction:
    """Stories parsed from one page plus the containers that were skipped."""

    stories: List[Story] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _inner_html(tag: Tag) -> str:
    return tag.decode_contents().strip()


def _required_int(container: Tag, selector: str, name: str, story_id: Optional[int] = None) -> int:
    node = container.select_one(selector)
    if node is None:
        raise ParseError(f"Missing {name} node ({selector!r})", story_id=story_id)
    value = _inner_html(node)
    try:
        return int(value)
    except ValueError as exc:
        raise ParseError(f"Non-numeric {name}: {value!r}", story_id=story_id) from exc


def _timestamp(container: Tag, story_id: int) -> int:
    time_node = container.select_one(DATETIME_SELECTOR)
    machine = time_node.get("datetime") if time_node is not None else None
    if machine:
        return parse_iso_instant(machine)

    date_node = container.select_one(DATE_SELECTOR)
    if date_node is None:
        raise ParseError("Story has neither a datetime attribute nor a date string", story_id=story_id)
    return parse_russian_date(_inner_html(date_node))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_story(container: Tag) -> Story:
    """Extract one :class:`Story` from a ``div.story`` container.

    Raises:
        ParseError: If the id or likes node is missing or not an integer, or
            no usable date is present (``DateParseError``).
    """
    story_id = _required_int(container, STORY_ID_SELECTOR, "story id")
    title = "\n".join(_inner_html(a) for a in container.select(TITLE_SELECTOR))
    try:
        timestamp = _timestamp(container, story_id)
    except ParseError as exc:
        exc.story_id = story_id
        raise
    tags = [_inner_html(a) for a in container.select(TAGS_SELECTOR)]
    text = "\n".join(_inner_html(p) for p in container.select(TEXT_SELECTOR))
    likes = _required_int(container, LIKES_SELECTOR, "likes", story_id=story_id)

    return Story(
        story_id=story_id,
        title=title,
        timestamp=timestamp,
        tags=tags,
        text=text,
        likes=likes,
    )


def extract_page(markup: Union[bytes, str]) -> Extraction:
    """Parse every story container of a page, collecting per-story failures."""
    if isinstance(markup, bytes):
        markup = markup.decode("utf-8", errors="replace")

    soup = BeautifulSoup(markup, "html.parser")
    result = Extraction()
    for index, container in enumerate(soup.select(CONTAINER_SELECTOR)):
        try:
            result.stories.append(parse_story(container))
        except ParseError as exc:
            logger.warning(
                "Skipping story container #%d (story id %s): %s",
                index, exc.story_id if exc.story_id is not None else "unknown", exc,
            )
            result.errors.append(exc)
    return result


def extract_stories(markup: Union[bytes, str]) -> List[Story]:
    """Return the well-formed stories of a page in document order.

    A page without any story container yields an empty list.
    """
    return extract_page(markup).stories
