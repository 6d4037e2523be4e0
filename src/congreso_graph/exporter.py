"""Parquet snapshot of a working set (star schema, one file per table).

Written next to the relational store so analysts can load a run with polars
or DuckDB without touching the database::

    processed/
      dim_initiatives.parquet
      fact_edges.parquet
      fact_timeline.parquet
      fact_stages.parquet
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import polars as pl

from .working_set import WorkingSet

LOGGER = logging.getLogger(__name__)

_INITIATIVE_SCHEMA = {
    "expediente": pl.Utf8,
    "kind": pl.Utf8,
    "subject": pl.Utf8,
    "promoter": pl.Utf8,
    "submission_date": pl.Date,
    "qualification_date": pl.Date,
    "legislature": pl.Utf8,
    "committee": pl.Utf8,
    "procedure_type": pl.Utf8,
    "party_id": pl.Utf8,
    "party_short_name": pl.Utf8,
    "ai_title": pl.Utf8,
}
_EDGE_SCHEMA = {
    "source_expediente": pl.Utf8,
    "target_expediente": pl.Utf8,
    "kind": pl.Utf8,
    "score": pl.Float64,
}
_TIMELINE_SCHEMA = {
    "expediente": pl.Utf8,
    "order": pl.Int64,
    "event_label": pl.Utf8,
    "start_date": pl.Date,
    "end_date": pl.Date,
    "raw_description": pl.Utf8,
}
_STAGE_SCHEMA = {
    "expediente": pl.Utf8,
    "stage": pl.Utf8,
    "step": pl.Int64,
    "rule": pl.Utf8,
    "reason_json": pl.Utf8,
}


def initiatives_frame(ws: WorkingSet) -> pl.DataFrame:
    rows = []
    for key, i in ws.initiatives.items():
        party = ws.parties.get(key)
        enrichment = ws.enrichments.get(key)
        rows.append(
            {
                "expediente": key,
                "kind": i.kind,
                "subject": i.subject,
                "promoter": i.promoter,
                "submission_date": i.submission_date,
                "qualification_date": i.qualification_date,
                "legislature": i.legislature,
                "committee": i.committee,
                "procedure_type": i.procedure_type,
                "party_id": party.party_id if party else None,
                "party_short_name": party.short_name if party else None,
                "ai_title": enrichment.title if enrichment else None,
            }
        )
    return pl.DataFrame(rows, schema=_INITIATIVE_SCHEMA)


def edges_frame(ws: WorkingSet) -> pl.DataFrame:
    rows = [
        {
            "source_expediente": e.source_expediente,
            "target_expediente": e.target_expediente,
            "kind": e.kind.value,
            "score": e.score,
        }
        for e in ws.edges
    ]
    return pl.DataFrame(rows, schema=_EDGE_SCHEMA)


def timeline_frame(ws: WorkingSet) -> pl.DataFrame:
    rows = [
        {
            "expediente": e.expediente,
            "order": e.order,
            "event_label": e.event_label,
            "start_date": e.start_date,
            "end_date": e.end_date,
            "raw_description": e.raw_description,
        }
        for events in ws.timelines.values()
        for e in events
    ]
    return pl.DataFrame(rows, schema=_TIMELINE_SCHEMA)


def stages_frame(ws: WorkingSet) -> pl.DataFrame:
    rows = [
        {
            "expediente": c.expediente,
            "stage": c.stage.value,
            "step": c.step,
            "rule": c.reason.get("rule", ""),
            "reason_json": json.dumps(c.reason, sort_keys=True, ensure_ascii=False),
        }
        for c in ws.classifications.values()
    ]
    return pl.DataFrame(rows, schema=_STAGE_SCHEMA)


def export_working_set(ws: WorkingSet, out_dir: Path) -> list[Path]:
    """Write the four tables under *out_dir*; returns the written paths."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    tables = {
        "dim_initiatives": initiatives_frame(ws),
        "fact_edges": edges_frame(ws),
        "fact_timeline": timeline_frame(ws),
        "fact_stages": stages_frame(ws),
    }
    written: list[Path] = []
    for name, df in tables.items():
        path = out_dir / f"{name}.parquet"
        df.write_parquet(path)
        LOGGER.info("  %s: %d rows", path.name, len(df))
        written.append(path)
    return written
