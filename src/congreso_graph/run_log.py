"""Append-only JSONL log of ingestion runs.

Every CLI invocation appends one line: run id, task, timing per phase,
final status and the run summary counts.  Handy for spotting a day whose
skip count or edge count suddenly jumped.

Usage::

    from congreso_graph.run_log import RunLogger

    with RunLogger("ingest") as log:
        with log.phase_ctx("Load", detail="12 files"):
            ...
        log.meta.update(summary.as_meta())
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path(".run_log.jsonl")


def get_log_path() -> Path:
    return Path(os.environ.get("CONGRESO_RUN_LOG", str(DEFAULT_LOG_PATH)))


@dataclass
class RunRecord:
    """One line in the run log."""

    run_id: str
    task: str
    started_at: str  # ISO, UTC
    ended_at: str | None = None
    duration_s: float | None = None
    status: str = "running"  # ok | error | cancelled | running
    phases: list[dict] = field(default_factory=list)  # [{name, duration_s, detail}]
    error: str | None = None
    meta: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, default=str)

    @classmethod
    def from_json_line(cls, line: str) -> RunRecord | None:
        line = line.strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            LOGGER.debug("Ignoring malformed run-log line: %r", line[:80])
            return None
        if not isinstance(data, dict):
            return None
        return cls(
            run_id=data.get("run_id", ""),
            task=data.get("task", ""),
            started_at=data.get("started_at", ""),
            ended_at=data.get("ended_at"),
            duration_s=data.get("duration_s"),
            status=data.get("status", "ok"),
            phases=data.get("phases", []),
            error=data.get("error"),
            meta=data.get("meta", {}),
        )


class RunLogger:
    """Times one run and appends it to the log on exit (exceptions included)."""

    def __init__(self, task: str, *, log_path: Path | None = None, meta: dict | None = None):
        self.task = task
        self.log_path = log_path if log_path is not None else get_log_path()
        self.meta: dict = dict(meta or {})
        self.run_id = uuid.uuid4().hex[:8]
        self.status = "ok"
        self.error: str | None = None
        self._phases: list[dict] = []
        self._started_at: str | None = None
        self._t0: float | None = None

    @contextmanager
    def phase_ctx(self, name: str, detail: str | None = None) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._phases.append(
                {"name": name, "duration_s": round(time.perf_counter() - t0, 2), "detail": detail}
            )

    def __enter__(self) -> RunLogger:
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.status = "error"
            self.error = f"{exc_type.__name__}: {exc_val}" if exc_val else exc_type.__name__
        self._append()
        return None  # never suppress

    def _append(self) -> None:
        ended_at = datetime.now(timezone.utc).isoformat()
        record = RunRecord(
            run_id=self.run_id,
            task=self.task,
            started_at=self._started_at or ended_at,
            ended_at=ended_at,
            duration_s=round(time.perf_counter() - self._t0, 2) if self._t0 else None,
            status=self.status,
            phases=self._phases,
            error=self.error,
            meta=self.meta,
        )
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(record.to_json_line() + "\n")
        except OSError as e:
            LOGGER.warning("Run log append failed: %s", e)


def load_recent_runs(
    n: int = 20, *, task: str | None = None, log_path: Path | None = None
) -> list[RunRecord]:
    """The last *n* runs, newest first, optionally filtered by task."""
    path = log_path or get_log_path()
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        records = [r for r in map(RunRecord.from_json_line, f) if r is not None]
    if task is not None:
        records = [r for r in records if r.task == task]
    return records[::-1][:n]
