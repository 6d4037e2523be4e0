from __future__ import annotations

from pathlib import Path

import pytest

from congreso_graph.run_log import RunLogger, RunRecord, load_recent_runs


class TestRunLogger:
    def test_appends_one_line_per_run(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        for i in range(3):
            with RunLogger("ingest", log_path=path, meta={"n": i}) as log:
                with log.phase_ctx("Load", detail="2 files"):
                    pass
        assert len(path.read_text(encoding="utf-8").splitlines()) == 3
        runs = load_recent_runs(log_path=path)
        assert [r.meta["n"] for r in runs] == [2, 1, 0]
        assert runs[0].phases[0]["name"] == "Load"
        assert runs[0].status == "ok"

    def test_error_recorded_and_propagated(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        with pytest.raises(RuntimeError):
            with RunLogger("ingest", log_path=path):
                raise RuntimeError("boom")
        run = load_recent_runs(log_path=path)[0]
        assert run.status == "error"
        assert run.error == "RuntimeError: boom"

    def test_filter_by_task_and_limit(self, tmp_path: Path) -> None:
        path = tmp_path / "runs.jsonl"
        for task in ("ingest", "export", "ingest", "ingest"):
            with RunLogger(task, log_path=path):
                pass
        assert len(load_recent_runs(2, task="ingest", log_path=path)) == 2
        assert len(load_recent_runs(task="export", log_path=path)) == 1

    def test_missing_log(self, tmp_path: Path) -> None:
        assert load_recent_runs(log_path=tmp_path / "none.jsonl") == []


class TestRunRecord:
    def test_malformed_lines_ignored(self) -> None:
        assert RunRecord.from_json_line("") is None
        assert RunRecord.from_json_line("{not json") is None
        assert RunRecord.from_json_line("[1, 2]") is None

    def test_roundtrip(self) -> None:
        rec = RunRecord(run_id="abc", task="ingest", started_at="2024-05-01T01:00:00+00:00")
        assert RunRecord.from_json_line(rec.to_json_line()) == rec
