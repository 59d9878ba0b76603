"""Centralised settings for the ithappens archiver.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).  The CLI layers its own
options on top with :func:`dataclasses.replace`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _optional_path(name: str) -> Optional[Path]:
    value = os.environ.get(name)
    return Path(value) if value else None


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("ITHAPPENS_WORKSPACE", "."))
    )
    download_dir_override: Optional[Path] = field(
        default_factory=lambda: _optional_path("ITHAPPENS_DOWNLOAD_DIR")
    )
    db_path_override: Optional[Path] = field(
        default_factory=lambda: _optional_path("ITHAPPENS_DB")
    )

    @property
    def download_dir(self) -> Path:
        """Directory holding one raw ``<page>.html`` file per fetched page."""
        return self.download_dir_override or self.workspace_dir / "saved"

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.db_path_override or self.workspace_dir / "ithappens.sqlite"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Remote archive
    # ------------------------------------------------------------------
    archive_base: str = field(
        default_factory=lambda: os.environ.get(
            "ITHAPPENS_ARCHIVE_BASE", "https://web.archive.org/web"
        )
    )
    snapshot_id: str = field(
        default_factory=lambda: os.environ.get("ITHAPPENS_SNAPSHOT_ID", "20220120110021")
    )
    source_site: str = field(
        default_factory=lambda: os.environ.get(
            "ITHAPPENS_SOURCE_SITE", "https://ithappens.me"
        )
    )
    first_page: int = field(
        default_factory=lambda: int(os.environ.get("ITHAPPENS_FIRST_PAGE", "1"))
    )
    last_page: int = field(
        default_factory=lambda: int(os.environ.get("ITHAPPENS_LAST_PAGE", "1487"))
    )

    # ------------------------------------------------------------------
    # Scraper
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    max_workers: int = field(
        default_factory=lambda: int(
            os.environ.get("ITHAPPENS_MAX_WORKERS", os.cpu_count() or 1)
        )
    )

    @property
    def pages(self) -> range:
        """Page numbers to process, newest (highest) first."""
        return range(self.last_page, self.first_page - 1, -1)

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)


# Module-level singleton - import this everywhere:
#   from ithappens.config import settings
settings = Settings()
