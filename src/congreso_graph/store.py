"""Persistence adapter: idempotent upsert of a working set into the store.

The unit of atomicity is one initiative's full record set (row, timeline,
outgoing edges, classification, stage history) written in a single
transaction.  A failing initiative is rolled back, logged and counted;
initiatives already committed stay committed.

Re-running with unchanged data is a no-op on content: rows are keyed by
natural identifiers, dependents are deleted and re-inserted identically,
and stage history only grows when the stage actually changes.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import (
    InitiativeRow,
    RelationshipEdgeRow,
    StageClassificationRow,
    StageHistoryRow,
    TimelineEventRow,
    create_store_engine,
    init_db,
    make_session_factory,
    session_scope,
)
from .errors import PersistenceUnavailableError
from .models import (
    EdgeKind,
    Initiative,
    RelationshipEdge,
    Stage,
    StageClassification,
    TimelineEvent,
)
from .working_set import WorkingSet

LOGGER = logging.getLogger(__name__)


@dataclass
class PersistResult:
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    stage_changes: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)  # (expediente, error)
    cancelled: bool = False

    @property
    def written(self) -> int:
        return self.inserted + self.updated


class InitiativeStore:
    """SQLAlchemy-backed store; accepts a URL or a ready engine."""

    def __init__(self, url_or_engine: str | Engine) -> None:
        """Open a store on a URL or an existing engine.

        Raises:
            PersistenceUnavailableError: the URL is empty, malformed or names
                a dialect/driver that is not installed.
        """
        if isinstance(url_or_engine, str):
            if not url_or_engine:
                raise PersistenceUnavailableError("no store URL configured (CONGRESO_DB_URL)")
            try:
                self.engine = create_store_engine(url_or_engine)
            except SQLAlchemyError as exc:
                raise PersistenceUnavailableError(
                    f"invalid store URL {url_or_engine!r}: {exc}"
                ) from exc
            _ensure_sqlite_dir(url_or_engine)
        else:
            self.engine = url_or_engine
        self._sessions = make_session_factory(self.engine)

    # ── Connectivity ─────────────────────────────────────────────────────

    def check_connection(self) -> None:
        """Verify the store is reachable and the tables exist.

        Raises:
            PersistenceUnavailableError: nothing can be written this run.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            init_db(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceUnavailableError(
                f"store unreachable at {self.engine.url!r}: {exc}"
            ) from exc

    # ── Writes ───────────────────────────────────────────────────────────

    def persist(
        self, working_set: WorkingSet, cancel: threading.Event | None = None
    ) -> PersistResult:
        result = PersistResult()
        edges = working_set.edges_by_source()
        for key, initiative in working_set.initiatives.items():
            if cancel is not None and cancel.is_set():
                LOGGER.warning("Persistence cancelled after %d initiatives", result.written)
                result.cancelled = True
                break
            try:
                with session_scope(self._sessions) as session:
                    created, changed = self._write_initiative(
                        session, initiative, working_set, edges.get(key, [])
                    )
            except SQLAlchemyError as exc:
                LOGGER.error("Failed to persist %s: %s", key, exc)
                result.failed += 1
                result.failures.append((key, str(exc)))
                continue
            if created:
                result.inserted += 1
            else:
                result.updated += 1
            if changed:
                result.stage_changes += 1
        LOGGER.info(
            "Persisted %d initiatives (%d new, %d updated, %d failed, %d stage changes)",
            result.written,
            result.inserted,
            result.updated,
            result.failed,
            result.stage_changes,
        )
        return result

    def _write_initiative(
        self,
        session: Session,
        initiative: Initiative,
        working_set: WorkingSet,
        edges: list[RelationshipEdge],
    ) -> tuple[bool, bool]:
        """Upsert one initiative and replace its dependents.

        Returns ``(created, stage_changed)``.
        """
        key = initiative.expediente
        row = session.get(InitiativeRow, key)
        created = row is None
        if row is None:
            row = InitiativeRow(expediente=key)
            session.add(row)
        _apply_initiative(row, initiative)

        party = working_set.parties.get(key)
        if party is not None:
            row.party_id = party.party_id
            row.party_short_name = party.short_name
            row.party_confidence = party.confidence
            row.party_method = party.method
        enrichment = working_set.enrichments.get(key)
        if enrichment is not None:
            if enrichment.title:
                row.ai_title = enrichment.title
            if enrichment.analysis:
                row.ai_analysis = enrichment.analysis
        session.flush()

        session.execute(delete(TimelineEventRow).where(TimelineEventRow.expediente == key))
        session.add_all(_timeline_row(e) for e in working_set.timelines.get(key, []))

        session.execute(
            delete(RelationshipEdgeRow).where(RelationshipEdgeRow.source_expediente == key)
        )
        # Incoming similar edges from initiatives outside this run would
        # outlive their mirror; sources inside the run rewrite their own.
        incoming = session.scalars(
            select(RelationshipEdgeRow).where(
                RelationshipEdgeRow.target_expediente == key,
                RelationshipEdgeRow.kind == EdgeKind.SIMILAR.value,
            )
        ).all()
        for stale in incoming:
            if stale.source_expediente not in working_set:
                session.delete(stale)
        session.add_all(
            RelationshipEdgeRow(
                source_expediente=e.source_expediente,
                target_expediente=e.target_expediente,
                kind=e.kind.value,
                score=e.score,
            )
            for e in edges
        )

        changed = False
        classification = working_set.classifications.get(key)
        if classification is not None:
            changed = _replace_classification(session, classification)
        return created, changed

    # ── Reads ────────────────────────────────────────────────────────────

    def get_initiative(self, expediente: str) -> InitiativeRow | None:
        with session_scope(self._sessions) as session:
            return session.get(InitiativeRow, expediente)

    def timeline_for(self, expediente: str) -> list[TimelineEvent]:
        with session_scope(self._sessions) as session:
            rows = session.scalars(
                select(TimelineEventRow)
                .where(TimelineEventRow.expediente == expediente)
                .order_by(TimelineEventRow.position)
            ).all()
            return [
                TimelineEvent(
                    expediente=r.expediente,
                    event_label=r.event_label,
                    start_date=r.start_date,
                    end_date=r.end_date,
                    raw_description=r.raw_description,
                    order=r.position,
                )
                for r in rows
            ]

    def edges_for(self, expediente: str, kind: EdgeKind | None = None) -> list[RelationshipEdge]:
        """Outgoing edges of one initiative, ordered by kind, score and target."""
        with session_scope(self._sessions) as session:
            stmt = select(RelationshipEdgeRow).where(
                RelationshipEdgeRow.source_expediente == expediente
            )
            if kind is not None:
                stmt = stmt.where(RelationshipEdgeRow.kind == kind.value)
            rows = session.scalars(stmt).all()
            edges = [
                RelationshipEdge(
                    r.source_expediente, r.target_expediente, EdgeKind(r.kind), r.score
                )
                for r in rows
            ]
        return sorted(
            edges, key=lambda e: (e.kind.value, -(e.score or 0.0), e.target_expediente)
        )

    def classification_for(self, expediente: str) -> StageClassification | None:
        with session_scope(self._sessions) as session:
            row = session.get(StageClassificationRow, expediente)
            if row is None:
                return None
            return StageClassification(
                expediente=row.expediente,
                stage=Stage(row.stage),
                step=row.step,
                reason=json.loads(row.reason_json),
            )

    def stage_history(self, expediente: str) -> list[tuple[str, int]]:
        with session_scope(self._sessions) as session:
            rows = session.execute(
                select(StageHistoryRow.stage, StageHistoryRow.step)
                .where(StageHistoryRow.expediente == expediente)
                .order_by(StageHistoryRow.id)
            ).all()
            return [(stage, step) for stage, step in rows]

    def initiatives_by_stage(self, stage: Stage) -> list[str]:
        with session_scope(self._sessions) as session:
            return list(
                session.scalars(
                    select(StageClassificationRow.expediente)
                    .where(StageClassificationRow.stage == stage.value)
                    .order_by(StageClassificationRow.expediente)
                )
            )

    def initiatives_by_party(self, party_id: str) -> list[str]:
        with session_scope(self._sessions) as session:
            return list(
                session.scalars(
                    select(InitiativeRow.expediente)
                    .where(InitiativeRow.party_id == party_id)
                    .order_by(InitiativeRow.expediente)
                )
            )

    def initiatives_by_kind(self, kind: str) -> list[str]:
        with session_scope(self._sessions) as session:
            return list(
                session.scalars(
                    select(InitiativeRow.expediente)
                    .where(InitiativeRow.kind == kind)
                    .order_by(InitiativeRow.expediente)
                )
            )

    def row_counts(self) -> dict[str, int]:
        tables = {
            "initiatives": InitiativeRow,
            "timeline_events": TimelineEventRow,
            "relationship_edges": RelationshipEdgeRow,
            "stage_classifications": StageClassificationRow,
            "stage_history": StageHistoryRow,
        }
        with session_scope(self._sessions) as session:
            return {
                name: session.scalar(select(func.count()).select_from(model)) or 0
                for name, model in tables.items()
            }


# ── Row mapping helpers ──────────────────────────────────────────────────────

_COPIED_FIELDS = (
    "kind",
    "subject",
    "promoter",
    "submission_date",
    "qualification_date",
    "legislature",
    "committee",
    "rapporteurs",
    "deadlines",
    "procedure_text",
    "outcome",
    "current_situation",
    "supertype",
    "grouping",
    "processing_type",
    "bocg_links",
    "ds_links",
    "procedure_type",
)


def _apply_initiative(row: InitiativeRow, initiative: Initiative) -> None:
    """Full-field replace; last write wins."""
    for name in _COPIED_FIELDS:
        setattr(row, name, getattr(initiative, name))


def _timeline_row(event: TimelineEvent) -> TimelineEventRow:
    return TimelineEventRow(
        expediente=event.expediente,
        position=event.order,
        event_label=event.event_label,
        start_date=event.start_date,
        end_date=event.end_date,
        raw_description=event.raw_description,
    )


def _replace_classification(session: Session, classification: StageClassification) -> bool:
    """Write the classification; append history when stage or step moved."""
    reason_json = json.dumps(classification.reason, sort_keys=True, ensure_ascii=False)
    row = session.get(StageClassificationRow, classification.expediente)
    changed = row is None or (row.stage, row.step) != (
        classification.stage.value,
        classification.step,
    )
    if row is None:
        row = StageClassificationRow(expediente=classification.expediente)
        session.add(row)
    row.stage = classification.stage.value
    row.step = classification.step
    row.reason_json = reason_json
    if changed:
        session.add(
            StageHistoryRow(
                expediente=classification.expediente,
                stage=classification.stage.value,
                step=classification.step,
                reason_json=reason_json,
            )
        )
    return changed


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix) and url[len(prefix):] not in ("", ":memory:"):
        Path(url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)
