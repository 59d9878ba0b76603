"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from ithappens.api import app

    uvicorn ithappens.api:app --reload
"""

from ithappens.api.app import app

__all__ = ["app"]
