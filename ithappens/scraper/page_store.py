"""Write-once byte cache of fetched pages, one file per page number.

A page file is published with :func:`os.replace` after being fully written to
a temporary sibling, so the presence of ``<page>.html`` always means a
complete earlier download.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

from ithappens.errors import PageNotFoundError, StoreIOError
from ithappens.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class PageStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, page: int) -> Path:
        return self.root / f"{page}.html"

    def exists(self, page: int) -> bool:
        """Return whether *page* is cached.

        Raises :class:`StoreIOError` when the cache location cannot be
        inspected at all (permissions, over-long path).
        """
        try:
            st = self.path_for(page).stat()
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            raise StoreIOError(page, exc) from exc
        return stat.S_ISREG(st.st_mode)

    def write(self, page: int, content: bytes) -> Result[None, StoreIOError]:
        """Store *content* for *page* unless a copy is already cached."""
        try:
            if self.exists(page):
                return Ok(None)
        except StoreIOError as exc:
            return Err(exc)

        target = self.path_for(page)
        tmp_name = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.root, prefix=f".{page}.", suffix=".part", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(content)
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return Err(StoreIOError(page, exc))

        logger.debug("Cached page %d at %s (%d bytes)", page, target, len(content))
        return Ok(None)

    def read(self, page: int) -> Result[bytes, StoreIOError]:
        try:
            cached = self.exists(page)
        except StoreIOError as exc:
            return Err(exc)
        path = self.path_for(page)
        if not cached:
            return Err(PageNotFoundError(page, FileNotFoundError(str(path))))
        try:
            return Ok(path.read_bytes())
        except OSError as exc:
            return Err(StoreIOError(page, exc))

    def pages(self) -> list[int]:
        """Return the cached page numbers in ascending order."""
        if not self.root.is_dir():
            return []
        found = []
        for path in self.root.glob("*.html"):
            if path.stem.isdigit():
                found.append(int(path.stem))
        return sorted(found)
