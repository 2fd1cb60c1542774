"""Tests for settings loading."""

from pathlib import Path

import pytest

from vault_index.core.config import Settings


def test_yaml_values_are_flattened_and_clamped(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "chunking:\n"
        "  chunk_size: 800\n"
        "  overlap: 0.2\n"
        "retrieval:\n"
        "  top_k: 500\n"
        "vault:\n"
        "  exclude_paths: '.obsidian, templates, .obsidian'\n"
        "  debounce_seconds: 1.5\n"
    )
    settings = Settings.from_yaml(config)
    assert settings.chunk_size == 800
    assert settings.chunk_overlap == 0.2
    assert settings.top_k == 100
    assert settings.exclude_paths == [".obsidian", "templates"]
    assert settings.debounce_seconds == 1.5


def test_environment_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("retrieval:\n  min_score: 0.1\n")
    monkeypatch.setenv("VIDX_MIN_SCORE", "0.5")
    settings = Settings.from_yaml(config)
    assert settings.min_score == 0.5
    assert settings.worker_count == 2
    assert settings.watch_vault is False


def test_config_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "custom.yaml"
    config.write_text("embeddings:\n  load_retries: 5\n")
    monkeypatch.setenv("VIDX_CONFIG", str(config))
    assert Settings.from_yaml().model_load_retries == 5


def test_defaults_without_config() -> None:
    settings = Settings()
    assert settings.chunk_size == 500
    assert settings.chunk_overlap == 0.15
    assert settings.min_chunk_size == 50
    assert settings.min_score == 0.3
    assert settings.model_load_retries == 3
