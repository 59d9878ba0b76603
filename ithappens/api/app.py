"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``, guarded by ``request.app.state.lock``)
and initialises the schema.  On shutdown it closes the connection cleanly.

Routers
-------
    /stories   - single story lookup and archive statistics
    /search    - keyword search over the inverted index
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ithappens import __version__
from ithappens.db import get_connection, init_db
from ithappens.text import Stemmer

from ithappens.api.routers import search as search_router
from ithappens.api.routers import stories as stories_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.lock = threading.Lock()
    app.state.stemmer = Stemmer()
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="ithappens archive API",
        description="Read-only access to archived ithappens.me stories and keyword search.",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(stories_router.router, prefix="/stories", tags=["stories"])
    app.include_router(search_router.router, prefix="/search", tags=["search"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn ithappens.api.app:app --reload
app = create_app()
