from __future__ import annotations

from pathlib import Path

import pytest

from ingestion.core.errors import ConfigError, PersistenceError
from ingestion.core.pipeline import BatchResult, ItemOutcome
from ingestion.jobs import run_enrichment, sync_sources


class _Pipeline:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc
        self.limits: list[int] = []

    def process_batch(self, limit: int) -> BatchResult:
        self.limits.append(limit)
        if self.exc:
            raise self.exc
        return BatchResult(limit=limit, picked=1, results=[ItemOutcome(id=1, ok=True)])


def _settings():
    from app.core.config import Settings

    return Settings(openai_api_key="sk-test")


def test_run_enrichment_success(monkeypatch: pytest.MonkeyPatch):
    pipeline = _Pipeline()
    used: list = []
    monkeypatch.setattr(run_enrichment, "get_settings", _settings)
    monkeypatch.setattr(run_enrichment, "build_pipeline", lambda s: used.append(s) or pipeline)

    assert run_enrichment.main(["--limit", "7", "--workers", "3"]) == 0
    assert pipeline.limits == [7]
    assert used[0].enrich_workers == 3


def test_run_enrichment_config_error(monkeypatch: pytest.MonkeyPatch):
    def boom():
        raise ConfigError("Missing env var: OPENAI_API_KEY")

    monkeypatch.setattr(run_enrichment, "get_settings", boom)
    assert run_enrichment.main([]) == 2


def test_run_enrichment_storage_failure(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(run_enrichment, "get_settings", _settings)
    monkeypatch.setattr(run_enrichment, "build_pipeline", lambda s: _Pipeline(PersistenceError("claim failed")))
    assert run_enrichment.main([]) == 1


def test_sync_sources_missing_file(tmp_path: Path):
    assert sync_sources.main(["--file", str(tmp_path / "absent.yaml")]) == 2


def test_sync_sources_reads_registry_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    seen: list[Path] = []

    def fake_load(path: Path):
        seen.append(path)
        raise ConfigError(f"cannot read {path}")

    target = tmp_path / "registry.yaml"
    monkeypatch.setattr(sync_sources, "load_env_if_present", lambda **_: None)
    monkeypatch.setattr(sync_sources, "load_sources_yaml", fake_load)
    monkeypatch.setenv("COCKPIT_SOURCES_YAML", str(target))

    assert sync_sources.main([]) == 2
    assert seen == [target]
