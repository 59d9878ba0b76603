"""Tokenizing and stemming story text for the inverted index."""

from __future__ import annotations

import re
import threading
from collections import Counter
from typing import NamedTuple

from nltk.stem.snowball import SnowballStemmer

from ithappens.scraper.models import Story

_SEPARATOR_RE = re.compile(r"[^A-Za-zА-Яа-яЁё0-9']+")
_CYRILLIC_RE = re.compile(r"[А-Яа-яЁё]")


class IndexEntry(NamedTuple):
    term: str
    document: int
    count: int


def tokenize(text: str) -> Counter[str]:
    """Split *text* into lowercased words and count each one.

    Anything other than Latin/Cyrillic letters, digits and the apostrophe
    separates words.
    """
    return Counter(word.lower() for word in _SEPARATOR_RE.split(text) if word)


class Stemmer:
    """Russian Snowball stemmer.

    Build one at start-up and hand it to whatever needs it.  The underlying
    nltk stemmer keeps no per-call state, but calls are serialized anyway so
    the object is safe to share between threads.

    Tokens without Cyrillic letters are returned unchanged, so Latin words
    and numbers are indexed exactly as written.
    """

    def __init__(self, language: str = "russian") -> None:
        self._stemmer = SnowballStemmer(language)
        self._lock = threading.Lock()

    def stem(self, token: str) -> str:
        if not _CYRILLIC_RE.search(token):
            return token
        with self._lock:
            return self._stemmer.stem(token)


def inverted_index(story: Story, stemmer: Stemmer) -> list[IndexEntry]:
    """Return one ``(term, story_id, count)`` row per distinct stemmed term."""
    counts: Counter[str] = Counter()
    for word, count in tokenize(story.text).items():
        counts[stemmer.stem(word)] += count
    return [IndexEntry(term, story.story_id, count) for term, count in counts.items()]
