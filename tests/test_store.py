"""Tests for the SQLAlchemy persistence adapter (SQLite under tmp_path)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from congreso_graph.db import create_store_engine
from congreso_graph.enrichment import Enrichment
from congreso_graph.errors import PersistenceUnavailableError
from congreso_graph.etl import build_working_set
from congreso_graph.models import EdgeKind, Stage
from congreso_graph.sources import load_documents
from congreso_graph.stages import classify_stage
from congreso_graph.store import InitiativeStore
from congreso_graph.working_set import WorkingSet


@pytest.fixture
def working_set(source_dir, settings):
    ws, _ = build_working_set(load_documents(source_dir), settings)
    return ws


def _snapshot(store: InitiativeStore, keys) -> dict:
    return {
        key: (
            store.timeline_for(key),
            store.edges_for(key),
            store.classification_for(key),
        )
        for key in keys
    }


class TestConnection:
    def test_unreachable_store_is_fatal(self, tmp_path: Path) -> None:
        # a directory is not a database file
        store = InitiativeStore(create_store_engine(f"sqlite:///{tmp_path}"))
        with pytest.raises(PersistenceUnavailableError):
            store.check_connection()

    @pytest.mark.parametrize("url", ["", "notadialect://x", "not a url"])
    def test_invalid_url_is_fatal(self, url: str) -> None:
        with pytest.raises(PersistenceUnavailableError):
            InitiativeStore(url)

    def test_creates_sqlite_parent_dir(self, tmp_path: Path) -> None:
        store = InitiativeStore(f"sqlite:///{tmp_path / 'nested' / 'db.sqlite'}")
        store.check_connection()
        assert (tmp_path / "nested").is_dir()


class TestPersist:
    def test_first_write(self, store, working_set) -> None:
        result = store.persist(working_set)
        assert (result.inserted, result.updated, result.failed) == (3, 0, 0)
        row = store.get_initiative("121/000001")
        assert row is not None
        assert row.subject == "Ley de Protección del Medio Ambiente"
        assert row.party_id == "gobierno"
        counts = store.row_counts()
        assert counts["initiatives"] == 3
        assert counts["stage_classifications"] == 3
        assert counts["stage_history"] == 3
        assert counts["relationship_edges"] == 3  # one related + a similar pair

    def test_idempotent_rerun(self, store, working_set) -> None:
        keys = list(working_set.initiatives)
        store.persist(working_set)
        before_counts = store.row_counts()
        before = _snapshot(store, keys)

        result = store.persist(working_set)

        assert (result.inserted, result.updated) == (0, 3)
        assert result.stage_changes == 0
        assert store.row_counts() == before_counts
        assert _snapshot(store, keys) == before

    def test_timeline_replaced_not_appended(self, store, working_set) -> None:
        store.persist(working_set)
        key = "121/000001"
        working_set.timelines[key] = working_set.timelines[key][:0]
        store.persist(working_set)
        assert store.timeline_for(key) == []

    def test_stage_change_appends_history(self, store, working_set, make_initiative) -> None:
        store.persist(working_set)
        key = "121/000001"
        working_set.classifications[key] = classify_stage(
            make_initiative(key, outcome="Aprobada")
        )
        result = store.persist(working_set)
        assert result.stage_changes == 1
        assert store.stage_history(key) == [("committee", 3), ("passed", 4)]
        assert store.classification_for(key).stage is Stage.PASSED

    def test_one_failure_does_not_roll_back_others(self, store, working_set, monkeypatch) -> None:
        original = InitiativeStore._write_initiative

        def flaky(self, session, initiative, ws, edges):
            if initiative.expediente == "122/000002":
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
            return original(self, session, initiative, ws, edges)

        monkeypatch.setattr(InitiativeStore, "_write_initiative", flaky)
        result = store.persist(working_set)

        assert result.failed == 1
        assert result.failures[0][0] == "122/000002"
        assert store.get_initiative("122/000002") is None
        assert store.get_initiative("121/000001") is not None
        assert store.get_initiative("130/000004") is not None

    def test_similar_pair_dropped_when_partner_absent(self, store, working_set) -> None:
        store.persist(working_set)
        a, b = "121/000001", "122/000002"
        assert store.edges_for(a, EdgeKind.SIMILAR)
        assert store.edges_for(b, EdgeKind.SIMILAR)

        # A later run that only carries B: B has no similar partner any more.
        only_b = WorkingSet(
            initiatives={b: working_set.initiatives[b]},
            timelines={b: working_set.timelines[b]},
            classifications={b: working_set.classifications[b]},
            parties={b: working_set.parties[b]},
        )
        store.persist(only_b)

        assert store.edges_for(a, EdgeKind.SIMILAR) == []
        assert store.edges_for(b, EdgeKind.SIMILAR) == []
        # declared edges owned by A are untouched
        assert [e.target_expediente for e in store.edges_for(a, EdgeKind.RELATED)] == [b]

    def test_similar_pair_kept_when_both_rewritten(self, store, working_set) -> None:
        store.persist(working_set)
        store.persist(working_set)
        pairs = {
            (e.source_expediente, e.target_expediente)
            for key in working_set.initiatives
            for e in store.edges_for(key, EdgeKind.SIMILAR)
        }
        assert pairs == {("121/000001", "122/000002"), ("122/000002", "121/000001")}

    def test_cancel_between_initiatives(self, store, working_set) -> None:
        cancel = threading.Event()
        cancel.set()
        result = store.persist(working_set, cancel=cancel)
        assert result.cancelled
        assert store.row_counts()["initiatives"] == 0

    def test_ai_text_kept_when_not_regenerated(self, store, working_set) -> None:
        key = "121/000001"
        working_set.enrichments[key] = Enrichment(title="Protección ambiental")
        store.persist(working_set)
        working_set.enrichments.clear()
        store.persist(working_set)
        assert store.get_initiative(key).ai_title == "Protección ambiental"


class TestQueries:
    def test_filters(self, store, working_set) -> None:
        store.persist(working_set)
        assert store.initiatives_by_stage(Stage.PASSED) == ["122/000002"]
        assert store.initiatives_by_stage(Stage.CLOSED) == ["130/000004"]
        assert store.initiatives_by_party("partido_socialista") == ["122/000002"]
        assert store.initiatives_by_kind("Real Decreto-ley") == ["130/000004"]

    def test_edges_for_kind(self, store, working_set) -> None:
        store.persist(working_set)
        related = store.edges_for("121/000001", EdgeKind.RELATED)
        assert [e.target_expediente for e in related] == ["122/000002"]
        similar = store.edges_for("122/000002", EdgeKind.SIMILAR)
        assert [e.target_expediente for e in similar] == ["121/000001"]
        assert similar[0].score == pytest.approx(0.75)

    def test_unknown_expediente(self, store) -> None:
        assert store.get_initiative("999/999999") is None
        assert store.classification_for("999/999999") is None
        assert store.timeline_for("999/999999") == []
