"""Ingestion orchestration: source exports → working set → store.

Stages run in dependency order over a single run-owned
:class:`~congreso_graph.working_set.WorkingSet`::

    normalize → dedupe → relationships → similarity → timelines → stages
      → (optional) enrichment → (optional) parquet snapshot → persist

Everything up to persistence is in-memory, so a run cancelled before the
persist phase leaves the store untouched.  Per-record problems become
:class:`~congreso_graph.models.SkipRecord` entries in the
:class:`RunSummary`; only :class:`~congreso_graph.errors.SourceUnavailableError`
and :class:`~congreso_graph.errors.PersistenceUnavailableError` abort a run.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from .config import IngestSettings
from .enrichment import EvidenceProvider, TextGenerator, build_text_generator, enrich
from .exporter import export_working_set
from .models import Initiative, SkipReason, SkipRecord
from .normalize import normalize_record
from .parties import identify_party, party_distribution
from .relationships import resolve_relationships
from .similarity import SimilarityEngine, SimilarityStats
from .sources import SourceDocument, load_documents
from .stages import classify_stage
from .store import InitiativeStore, PersistResult
from .timeline import extract_timeline
from .working_set import WorkingSet

LOGGER = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Counts reported at the end of every run, fatal or not."""

    documents: int = 0
    entries: int = 0  # raw entries seen across all documents
    processed: int = 0  # initiatives in the final working set
    duplicates: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    edges_by_kind: dict[str, int] = field(default_factory=dict)
    stage_distribution: dict[str, int] = field(default_factory=dict)
    party_distribution: list[tuple[str, int]] = field(default_factory=list)  # most frequent first
    timeline_events: int = 0
    timeline_lines_skipped: int = 0
    similarity: SimilarityStats = field(default_factory=SimilarityStats)
    enrichments_generated: int = 0
    enrichments_failed: int = 0
    exported: list[Path] = field(default_factory=list)
    cancelled: bool = False

    @property
    def skipped(self) -> int:
        return len(self.skips)

    @property
    def edges(self) -> int:
        return sum(self.edges_by_kind.values())

    def skip_reasons(self) -> dict[str, int]:
        return dict(Counter(s.reason.value for s in self.skips))

    def as_meta(self) -> dict:
        """Flat, JSON-friendly view for the run log."""
        return {
            "documents": self.documents,
            "entries": self.entries,
            "processed": self.processed,
            "skipped": self.skipped,
            "skip_reasons": self.skip_reasons(),
            "duplicates": self.duplicates,
            "edges_by_kind": self.edges_by_kind,
            "stage_distribution": self.stage_distribution,
            "party_distribution": dict(self.party_distribution),
            "timeline_events": self.timeline_events,
            "timeline_lines_skipped": self.timeline_lines_skipped,
            "enrichments_generated": self.enrichments_generated,
            "enrichments_failed": self.enrichments_failed,
            "cancelled": self.cancelled,
        }


@dataclass
class IngestionRun:
    working_set: WorkingSet
    summary: RunSummary
    persisted: PersistResult | None = None  # None for dry runs / cancelled runs


def _is_cancelled(cancel: threading.Event | None, before: str) -> bool:
    if cancel is not None and cancel.is_set():
        LOGGER.warning("Run cancelled before %s; nothing persisted", before)
        return True
    return False


# ── Normalization ────────────────────────────────────────────────────────────


def _normalize_document(doc: SourceDocument) -> tuple[list[Initiative], list[SkipRecord]]:
    """Normalize every entry of one document; errors stay inside the entry."""
    if doc.skip is not None:
        return [], [doc.skip]
    initiatives: list[Initiative] = []
    skips: list[SkipRecord] = []
    for index, entry in enumerate(doc.entries):
        source = str(doc.path)
        try:
            outcome = normalize_record(entry, source=source)
        except Exception as exc:  # one bad entry must not sink the batch
            outcome = SkipRecord(SkipReason.NORMALIZE_ERROR, f"{source}#{index}", repr(exc))
        if isinstance(outcome, SkipRecord):
            LOGGER.warning("Skipping entry %d of %s: %s", index, source, outcome.detail)
            skips.append(outcome)
        else:
            initiatives.append(outcome)
    return initiatives, skips


def normalize_documents(
    documents: Sequence[SourceDocument], summary: RunSummary, workers: int = 1
) -> list[Initiative]:
    """Normalize all documents, preserving batch order whatever *workers* is."""
    summary.documents = len(documents)
    summary.entries = sum(len(d.entries) for d in documents)
    if workers > 1 and len(documents) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_normalize_document, documents))
    else:
        results = [_normalize_document(d) for d in documents]

    initiatives: list[Initiative] = []
    for found, skips in results:
        initiatives.extend(found)
        summary.skips.extend(skips)
    return initiatives


def deduplicate(
    initiatives: Sequence[Initiative], working_set: WorkingSet, summary: RunSummary
) -> None:
    """Key the batch by expediente; a later duplicate replaces the earlier one."""
    for initiative in initiatives:
        key = initiative.expediente
        previous = working_set.initiatives.get(key)
        if previous is not None:
            LOGGER.warning(
                "Duplicate expediente %s: %s overrides %s",
                key,
                initiative.source_file or "<unknown>",
                previous.source_file or "<unknown>",
            )
            summary.duplicates += 1
        working_set.initiatives[key] = initiative


# ── Working set ──────────────────────────────────────────────────────────────


def build_working_set(
    documents: Sequence[SourceDocument],
    settings: IngestSettings,
    *,
    cancel: threading.Event | None = None,
) -> tuple[WorkingSet, RunSummary]:
    """Run every in-memory derivation over *documents*."""
    ws = WorkingSet()
    summary = RunSummary()

    # ── NORMALIZE ────────────────────────────────────────────────────────
    normalized = normalize_documents(documents, summary, settings.workers)
    deduplicate(normalized, ws, summary)
    summary.processed = len(ws)
    LOGGER.info(
        "Normalized %d initiatives from %d documents (%d skipped, %d duplicates)",
        summary.processed,
        summary.documents,
        summary.skipped,
        summary.duplicates,
    )
    if _is_cancelled(cancel, "relationship resolution"):
        summary.cancelled = True
        return ws, summary

    # ── RELATIONSHIPS ────────────────────────────────────────────────────
    ws.edges = resolve_relationships(ws.initiatives)
    if _is_cancelled(cancel, "similarity"):
        summary.cancelled = True
        return ws, summary

    # ── SIMILARITY ───────────────────────────────────────────────────────
    engine = SimilarityEngine(settings.similarity_threshold, settings.workers)
    similarity = engine.compute(ws.initiatives)
    ws.edges.extend(similarity.edges)
    summary.similarity = similarity.stats
    summary.edges_by_kind = ws.edge_counts()
    if _is_cancelled(cancel, "timeline extraction"):
        summary.cancelled = True
        return ws, summary

    # ── TIMELINES ────────────────────────────────────────────────────────
    for key, initiative in ws.initiatives.items():
        timeline = extract_timeline(key, initiative.procedure_text)
        ws.timelines[key] = timeline.events
        summary.timeline_events += len(timeline.events)
        summary.timeline_lines_skipped += len(timeline.skipped_lines)
    if _is_cancelled(cancel, "stage classification"):
        summary.cancelled = True
        return ws, summary

    # ── STAGES + PARTY ───────────────────────────────────────────────────
    for key, initiative in ws.initiatives.items():
        ws.classifications[key] = classify_stage(initiative)
        ws.parties[key] = identify_party(initiative)
    summary.stage_distribution = ws.stage_distribution()
    summary.party_distribution = party_distribution(ws.parties.values())
    return ws, summary


# ── Full run ─────────────────────────────────────────────────────────────────


def run_ingestion(
    settings: IngestSettings,
    *,
    store: InitiativeStore | None = None,
    generator: TextGenerator | None = None,
    evidence: EvidenceProvider | None = None,
    cancel: threading.Event | None = None,
    dry_run: bool = False,
) -> IngestionRun:
    """One complete run over ``settings.source_dir``.

    Raises:
        SourceUnavailableError: the source directory is missing/unreadable.
        PersistenceUnavailableError: the store cannot be reached at all.
    """
    # ── EXTRACT ──────────────────────────────────────────────────────────
    documents = load_documents(settings.source_dir, max_file_mb=settings.max_file_mb)

    if not dry_run:
        store = store or InitiativeStore(settings.db_url)
        store.check_connection()

    # ── TRANSFORM ────────────────────────────────────────────────────────
    ws, summary = build_working_set(documents, settings, cancel=cancel)
    run = IngestionRun(ws, summary)
    if summary.cancelled:
        return run

    # ── ENRICH (degraded on failure) ─────────────────────────────────────
    if generator is None and settings.enable_titles:
        generator = build_text_generator(settings.llm_model)
    if generator is not None:
        result = enrich(ws.initiatives.values(), ws.classifications, generator, evidence)
        ws.enrichments = result.by_expediente
        summary.enrichments_generated = result.generated
        summary.enrichments_failed = result.failed

    # ── SNAPSHOT ─────────────────────────────────────────────────────────
    if settings.export_dir is not None:
        summary.exported = export_working_set(ws, settings.export_dir)

    if dry_run:
        return run
    if _is_cancelled(cancel, "persistence"):
        summary.cancelled = True
        return run

    # ── PERSIST ──────────────────────────────────────────────────────────
    assert store is not None
    run.persisted = store.persist(ws, cancel=cancel)
    summary.cancelled = run.persisted.cancelled
    return run
