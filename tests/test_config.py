from __future__ import annotations

from pathlib import Path

import pytest

from congreso_graph.config import IngestSettings


class TestIngestSettings:
    def test_defaults(self) -> None:
        settings = IngestSettings()
        assert 0.0 <= settings.similarity_threshold <= 1.0
        assert settings.workers >= 1

    def test_from_env(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("CONGRESO_SOURCE_DIR", str(tmp_path))
        monkeypatch.setenv("CONGRESO_SIMILARITY_THRESHOLD", "0.75")
        monkeypatch.setenv("CONGRESO_WORKERS", "2")
        monkeypatch.setenv("CONGRESO_ENABLE_TITLES", "1")
        settings = IngestSettings.from_env()
        assert settings.source_dir == tmp_path
        assert settings.similarity_threshold == 0.75
        assert settings.workers == 2
        assert settings.enable_titles is True

    @pytest.mark.parametrize("threshold", [-0.1, 1.01])
    def test_threshold_range(self, threshold: float) -> None:
        with pytest.raises(ValueError):
            IngestSettings(similarity_threshold=threshold)

    def test_workers_positive(self) -> None:
        with pytest.raises(ValueError):
            IngestSettings(workers=0)

    def test_immutable(self) -> None:
        settings = IngestSettings()
        with pytest.raises(AttributeError):
            settings.workers = 8  # type: ignore[misc]

    def test_overrides_skip_none(self) -> None:
        settings = IngestSettings(workers=2).with_overrides(workers=None, similarity_threshold=0.9)
        assert settings.workers == 2
        assert settings.similarity_threshold == 0.9

    def test_export_dir_from_env(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("CONGRESO_EXPORT_DIR", str(tmp_path / "processed"))
        assert IngestSettings.from_env().export_dir == tmp_path / "processed"

    def test_empty_export_dir_disables_snapshot(self, monkeypatch) -> None:
        monkeypatch.setenv("CONGRESO_EXPORT_DIR", "")
        assert IngestSettings.from_env().export_dir is None
