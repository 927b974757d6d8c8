"""Centralised settings for the knowledge-base ingestion service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("KB_WORKSPACE", Path.home() / ".knowledgebase")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "knowledgebase.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Embedding model
    # ------------------------------------------------------------------
    embedding_provider: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_PROVIDER", "openai")
    )
    openai_embed_model: str = field(
        default_factory=lambda: os.environ.get(
            "OPENAI_EMBED_MODEL", "text-embedding-3-small"
        )
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_embed_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_EMBED_MODEL", "nomic-embed-text")
    )
    embedding_dim: int = field(
        default_factory=lambda: int(os.environ.get("EMBEDDING_DIM", "512"))
    )
    embedding_batch_size: int = field(
        default_factory=lambda: int(os.environ.get("EMBEDDING_BATCH_SIZE", "96"))
    )

    # ------------------------------------------------------------------
    # Website ingestion
    # ------------------------------------------------------------------
    max_website_pages: int = field(
        default_factory=lambda: int(os.environ.get("MAX_WEBSITE_PAGES", "200"))
    )
    max_links_per_page: int = field(
        default_factory=lambda: int(os.environ.get("MAX_LINKS_PER_PAGE", "50"))
    )
    min_website_length: int = field(
        default_factory=lambda: int(os.environ.get("MIN_WEBSITE_LENGTH", "200"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    download_delay_min: float = field(
        default_factory=lambda: float(os.environ.get("DOWNLOAD_DELAY_MIN", "0.5"))
    )
    download_delay_max: float = field(
        default_factory=lambda: float(os.environ.get("DOWNLOAD_DELAY_MAX", "1.0"))
    )
    crawl_delay_min: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_DELAY_MIN", "0.5"))
    )
    crawl_delay_max: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_DELAY_MAX", "1.5"))
    )

    # ------------------------------------------------------------------
    # RAG chunking
    # ------------------------------------------------------------------
    chunk_size: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_SIZE", "1000"))
    )
    chunk_overlap: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_OVERLAP", "200"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from knowledgebase.config import settings
settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the root log handler used by the API and the CLI.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. under pytest or uvicorn), so calling this twice is safe.
    """
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=_LOG_FORMAT,
    )
