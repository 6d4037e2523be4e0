"""Centralized configuration for the Congreso Graph ingestion pipeline.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``CONGRESO_PROFILE=dev`` (default) or
``CONGRESO_PROFILE=prod`` to get sensible defaults for each environment.  Any
individual ``CONGRESO_*`` var still overrides the profile value.

Usage::

    from congreso_graph.config import IngestSettings

    settings = IngestSettings.from_env()
    run_ingestion(settings)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

# Load .env from current working directory (project root when running the CLI)
load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────
# "dev" = single-threaded local runs, "prod" = the daily batch host.
# Individual vars always override the profile.

PROFILE: str = os.getenv("CONGRESO_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "CONGRESO_WORKERS": "1",
        "CONGRESO_ENABLE_TITLES": "0",
        "CONGRESO_DB_URL": "sqlite:///data/congreso.db",
    },
    "prod": {
        "CONGRESO_WORKERS": "4",
        "CONGRESO_ENABLE_TITLES": "0",
        "CONGRESO_DB_URL": "",  # empty → must be explicitly set
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown CONGRESO_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


def _optional_path(value: str) -> Path | None:
    return Path(value) if value.strip() else None


# ── Directories ──────────────────────────────────────────────────────────────
SOURCE_DIR: Path = Path(_env("CONGRESO_SOURCE_DIR", "downloads"))
# Empty means no parquet snapshot.
EXPORT_DIR: Path | None = _optional_path(_env("CONGRESO_EXPORT_DIR"))

# ── Store ────────────────────────────────────────────────────────────────────
DB_URL: str = _env("CONGRESO_DB_URL", "sqlite:///data/congreso.db")

# ── Derivation knobs ─────────────────────────────────────────────────────────
# Minimum normalized-subject similarity for a "similar" edge.
SIMILARITY_THRESHOLD: float = float(_env("CONGRESO_SIMILARITY_THRESHOLD", "0.6"))
WORKERS: int = int(_env("CONGRESO_WORKERS", "1"))
# Source files above this size are skipped (the exports occasionally ship
# multi-hundred-MB amendment dumps that are not initiatives).
MAX_FILE_MB: int = int(_env("CONGRESO_MAX_FILE_MB", "100"))

# ── AI enrichment ────────────────────────────────────────────────────────────
ENABLE_TITLES: bool = _env("CONGRESO_ENABLE_TITLES") == "1"
LLM_MODEL: str = _env("CONGRESO_LLM_MODEL", "claude-haiku-4-5")

# ── Production guard ─────────────────────────────────────────────────────────
if PROFILE == "prod" and not DB_URL:
    LOGGER.warning(
        "CONGRESO_DB_URL is not set in prod profile; ingestion will fail to persist."
    )


@dataclass(frozen=True)
class IngestSettings:
    """Immutable snapshot of everything a single ingestion run reads.

    Built once at the start of a run and handed to the orchestrator; nothing
    downstream reads the module-level constants directly, so a run never sees
    configuration change underneath it.
    """

    source_dir: Path = SOURCE_DIR
    db_url: str = DB_URL
    similarity_threshold: float = SIMILARITY_THRESHOLD
    workers: int = WORKERS
    max_file_mb: int = MAX_FILE_MB
    enable_titles: bool = ENABLE_TITLES
    llm_model: str = LLM_MODEL
    export_dir: Path | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}"
            )
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.max_file_mb < 1:
            raise ValueError(f"max_file_mb must be >= 1, got {self.max_file_mb}")

    @classmethod
    def from_env(cls) -> IngestSettings:
        """Settings as configured by the environment at call time."""
        return cls(
            source_dir=Path(_env("CONGRESO_SOURCE_DIR", "downloads")),
            db_url=_env("CONGRESO_DB_URL", "sqlite:///data/congreso.db"),
            similarity_threshold=float(_env("CONGRESO_SIMILARITY_THRESHOLD", "0.6")),
            workers=int(_env("CONGRESO_WORKERS", "1")),
            max_file_mb=int(_env("CONGRESO_MAX_FILE_MB", "100")),
            enable_titles=_env("CONGRESO_ENABLE_TITLES") == "1",
            llm_model=_env("CONGRESO_LLM_MODEL", "claude-haiku-4-5"),
            export_dir=_optional_path(_env("CONGRESO_EXPORT_DIR")),
        )

    def with_overrides(self, **changes) -> IngestSettings:
        """Copy with the non-``None`` values in *changes* applied (CLI flags)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
