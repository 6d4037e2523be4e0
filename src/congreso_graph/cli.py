"""``congreso-ingest``: run one ingestion over a source directory.

Usage::

    congreso-ingest                                # everything from .env / CONGRESO_*
    congreso-ingest --source downloads/2024-05-01  # one download folder
    congreso-ingest --threshold 0.7 --workers 4
    congreso-ingest --titles                       # AI titles + analysis
    congreso-ingest --export processed             # also write the parquet snapshot
    congreso-ingest --dry-run                      # derive everything, write nothing

Exit status is 0 when the run completes (even with skipped records) and 1 on
a fatal condition (source missing, store unreachable).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import IngestSettings
from .errors import CongresoError
from .etl import IngestionRun, run_ingestion
from .run_log import RunLogger

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="congreso-ingest",
        description="Ingest Congreso de los Diputados initiative exports",
    )
    parser.add_argument("--source", type=Path, help="Directory of XML exports")
    parser.add_argument("--db", dest="db_url", help="SQLAlchemy URL of the store")
    parser.add_argument("--threshold", type=float, help="Similarity edge threshold (0-1)")
    parser.add_argument("--workers", type=int, help="Worker threads for normalize/similarity")
    parser.add_argument("--titles", action="store_true", help="Generate AI titles and analysis")
    parser.add_argument("--export", type=Path, help="Write a parquet snapshot to this directory")
    parser.add_argument("--dry-run", action="store_true", help="Do not write to the store")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def settings_from_args(args: argparse.Namespace) -> IngestSettings:
    return IngestSettings.from_env().with_overrides(
        source_dir=args.source,
        db_url=args.db_url,
        similarity_threshold=args.threshold,
        workers=args.workers,
        enable_titles=True if args.titles else None,
        export_dir=args.export,
    )


def render_summary(run: IngestionRun, console: Console) -> None:
    summary = run.summary
    table = Table(title="Ingestion Complete", show_lines=True, title_style="bold green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Documents", f"{summary.documents:,}")
    table.add_row("Raw entries", f"{summary.entries:,}")
    table.add_row("Initiatives processed", f"{summary.processed:,}")
    reasons = ", ".join(f"{k}={v}" for k, v in sorted(summary.skip_reasons().items()))
    table.add_row("Skipped", f"{summary.skipped:,}" + (f" ({reasons})" if reasons else ""))
    table.add_row("Duplicate keys", f"{summary.duplicates:,}")
    for kind, count in sorted(summary.edges_by_kind.items()):
        table.add_row(f"Edges: {kind}", f"{count:,}")
    table.add_row(
        "Timeline events",
        f"{summary.timeline_events:,} ({summary.timeline_lines_skipped} lines skipped)",
    )
    for stage, count in sorted(summary.stage_distribution.items(), key=lambda kv: -kv[1]):
        table.add_row(f"Stage: {stage}", f"{count:,}")
    for party, count in summary.party_distribution:
        table.add_row(f"Party: {party}", f"{count:,}")
    if summary.enrichments_generated or summary.enrichments_failed:
        table.add_row(
            "AI enrichment",
            f"{summary.enrichments_generated} ok / {summary.enrichments_failed} failed",
        )
    if run.persisted is not None:
        table.add_row(
            "Persisted",
            f"{run.persisted.inserted} new, {run.persisted.updated} updated, "
            f"{run.persisted.failed} failed",
        )
    if summary.cancelled:
        table.add_row("[yellow]Cancelled[/]", "yes")
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console = Console()

    try:
        settings = settings_from_args(args)
    except ValueError as exc:
        LOGGER.error("Invalid settings: %s", exc)
        return 1

    try:
        with RunLogger("ingest", meta={"source": str(settings.source_dir)}) as log:
            with log.phase_ctx("Ingest"):
                run = run_ingestion(settings, dry_run=args.dry_run)
            log.meta.update(run.summary.as_meta())
            if run.persisted is not None:
                log.meta["persist_failed"] = run.persisted.failed
            if run.summary.cancelled:
                log.status = "cancelled"
    except CongresoError as exc:
        LOGGER.error("Ingestion failed: %s", exc)
        console.print(f"[bold red]Ingestion failed:[/] {exc}")
        return 1

    render_summary(run, console)
    return 0


if __name__ == "__main__":
    sys.exit(main())
