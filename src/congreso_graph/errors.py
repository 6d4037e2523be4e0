"""Exception hierarchy for the ingestion pipeline.

Only run-level conditions are raised.  Per-record problems are reported as
:class:`~congreso_graph.models.SkipRecord` values and aggregated into the run
summary instead.
"""

from __future__ import annotations


class CongresoError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailableError(CongresoError):
    """The source directory is missing or cannot be listed.  Fatal."""


class PersistenceUnavailableError(CongresoError):
    """The store cannot be reached at all for this run.  Fatal."""


class EnrichmentError(CongresoError):
    """An AI or evidence collaborator failed.  The enrichment is omitted."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable
