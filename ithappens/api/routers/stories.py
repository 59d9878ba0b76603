"""Story endpoints.

Routes
------
GET /stories/stats          Story count, highest story id, index size
GET /stories/{story_id}     Fetch a single story
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ithappens.db import SearchIndex, StoryRepository
from ithappens.scraper.models import Story

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class StoryResponse(BaseModel):
    story_id: int
    title: str
    timestamp: int
    tags: list[str]
    text: str
    likes: int


class StatsResponse(BaseModel):
    stories: int
    max_story_id: int
    index_rows: int


def story_response(story: Story) -> StoryResponse:
    return StoryResponse(
        story_id=story.story_id,
        title=story.title,
        timestamp=story.timestamp,
        tags=story.tags,
        text=story.text,
        likes=story.likes,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/stats", response_model=StatsResponse)
def stats(request: Request) -> StatsResponse:
    repository = StoryRepository(request.app.state.db, request.app.state.lock)
    index = SearchIndex(request.app.state.db, request.app.state.lock)
    return StatsResponse(
        stories=repository.count(),
        max_story_id=repository.max_story_id(),
        index_rows=index.row_count(),
    )


@router.get("/{story_id}", response_model=StoryResponse)
def get_story(request: Request, story_id: int) -> StoryResponse:
    repository = StoryRepository(request.app.state.db, request.app.state.lock)
    story = repository.get(story_id)
    if story is None:
        raise HTTPException(status_code=404, detail=f"Story not found: {story_id}")
    return story_response(story)
