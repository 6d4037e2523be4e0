"""Tests for locating and parsing the XML exports."""

from __future__ import annotations

from pathlib import Path

import pytest

from congreso_graph.errors import SourceUnavailableError
from congreso_graph.models import SkipReason
from congreso_graph.sources import iter_source_files, load_documents, parse_document

LEYES_EXPORT = """<?xml version="1.0" encoding="UTF-8"?>
<leyes>
  <ley>
    <NUMERO_LEY>7/2024</NUMERO_LEY>
    <TITULO_LEY>Ley 7/2024, de 20 de diciembre</TITULO_LEY>
    <FECHA_LEY>20/12/2024</FECHA_LEY>
  </ley>
</leyes>
"""


class TestIterSourceFiles:
    def test_missing_directory_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(SourceUnavailableError):
            iter_source_files(tmp_path / "nope")

    def test_direct_files_sorted(self, source_dir: Path) -> None:
        files = iter_source_files(source_dir)
        assert [f.name for f in files] == ["a_iniciativas.xml", "b_iniciativas.xml"]

    def test_dated_subfolders(self, tmp_path: Path) -> None:
        for day in ("2024-05-02", "2024-05-01"):
            (tmp_path / day).mkdir()
            (tmp_path / day / "leyes.xml").write_text(LEYES_EXPORT, encoding="utf-8")
        (tmp_path / "2024-05-01" / "notes.txt").write_text("ignore me")
        files = iter_source_files(tmp_path)
        assert [f.parent.name for f in files] == ["2024-05-01", "2024-05-02"]

    def test_direct_files_win_over_subfolders(self, source_dir: Path) -> None:
        (source_dir / "2024-05-01").mkdir()
        (source_dir / "2024-05-01" / "leyes.xml").write_text(LEYES_EXPORT, encoding="utf-8")
        assert len(iter_source_files(source_dir)) == 2

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert iter_source_files(tmp_path) == []


class TestParseDocument:
    def test_results_container(self, source_dir: Path) -> None:
        doc = parse_document(source_dir / "a_iniciativas.xml")
        assert doc.skip is None
        assert len(doc.entries) == 3
        first = doc.entries[0]
        assert first.expediente == "121/000001"
        assert first.subject == "Ley de Protección del Medio Ambiente"
        assert doc.entries[2].expediente is None

    def test_narrative_keeps_lines(self, source_dir: Path) -> None:
        doc = parse_document(source_dir / "a_iniciativas.xml")
        assert doc.entries[0].procedure_text.splitlines() == [
            "Comisión de Igualdad",
            "desde 12/12/2023 hasta 15/12/2023",
        ]

    def test_leyes_container(self, tmp_path: Path) -> None:
        path = tmp_path / "leyes.xml"
        path.write_text(LEYES_EXPORT, encoding="utf-8")
        doc = parse_document(path)
        assert [e.expediente for e in doc.entries] == ["7/2024"]
        assert doc.entries[0].submission_date == "20/12/2024"

    def test_latin1_export(self, tmp_path: Path) -> None:
        path = tmp_path / "latin.xml"
        body = LEYES_EXPORT.replace('encoding="UTF-8"', 'encoding="ISO-8859-1"').replace(
            "de diciembre", "de reforma de la Administración"
        )
        path.write_bytes(body.encode("latin-1"))
        doc = parse_document(path)
        assert doc.entries[0].subject.endswith("Administración")

    def test_no_known_container(self, tmp_path: Path) -> None:
        path = tmp_path / "other.xml"
        path.write_text("<catalogo><item>1</item></catalogo>", encoding="utf-8")
        doc = parse_document(path)
        assert doc.skip is None
        assert doc.entries == []

    def test_empty_file_is_skip(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.xml"
        path.write_bytes(b"")
        doc = parse_document(path)
        assert doc.skip is not None
        assert doc.skip.reason is SkipReason.UNPARSEABLE_DOCUMENT

    def test_oversize_file_is_skip(self, tmp_path: Path) -> None:
        path = tmp_path / "huge.xml"
        path.write_bytes(b"<results>" + b" " * (1024 * 1024 + 1) + b"</results>")
        doc = parse_document(path, max_file_mb=1)
        assert doc.skip is not None
        assert doc.skip.reason is SkipReason.FILE_TOO_LARGE
        assert doc.entries == []

    def test_unreadable_file_is_skip(self, tmp_path: Path) -> None:
        doc = parse_document(tmp_path / "vanished.xml")
        assert doc.skip is not None
        assert doc.skip.reason is SkipReason.UNREADABLE_FILE


class TestLoadDocuments:
    def test_batch_order(self, source_dir: Path) -> None:
        docs = load_documents(source_dir)
        assert [d.path.name for d in docs] == ["a_iniciativas.xml", "b_iniciativas.xml"]
        assert sum(len(d.entries) for d in docs) == 5
