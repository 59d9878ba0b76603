"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class RawPage:
    """The raw bytes of one archived feed page."""

    page: int
    content: bytes


@dataclass
class Story:
    """One story extracted from a feed page.

    ``timestamp`` is in epoch seconds.  ``title``, ``tags`` and ``text`` keep
    the inner markup of their source nodes as-is.
    """

    story_id: int
    title: str
    timestamp: int
    tags: List[str] = field(default_factory=list)
    text: str = ""
    likes: int = 0
