"""Search endpoint.

Routes
------
GET /search?q=<words>&stem=false&by_score=false&limit=50
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from ithappens.db import StoryRepository
from ithappens.db.search import search as search_index

router = APIRouter()


class SearchResult(BaseModel):
    story_id: int
    score: int
    title: Optional[str] = None


@router.get("", response_model=list[SearchResult])
def search(
    request: Request,
    q: str,
    stem: bool = False,
    by_score: bool = False,
    limit: int = Query(50, ge=1),
) -> list[SearchResult]:
    """Search stories by keyword.

    Args:
        q: Whitespace-separated words.
        stem: Stem query words the same way story text is stemmed.
        by_score: Order by accumulated word count instead of story id.
        limit: Maximum number of results to return.
    """
    conn = request.app.state.db
    lock = request.app.state.lock
    hits = search_index(
        conn,
        q,
        stemmer=request.app.state.stemmer if stem else None,
        by_score=by_score,
        lock=lock,
    )

    repository = StoryRepository(conn, lock)
    results = []
    for hit in hits[:limit]:
        story = repository.get(hit.document)
        results.append(
            SearchResult(
                story_id=hit.document,
                score=hit.score,
                title=story.title if story else None,
            )
        )
    return results
