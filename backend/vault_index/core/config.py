"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "VIDX_"
DEFAULT_CONFIG_PATH = Path("~/.config/vault-index/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("vault", "path"): "vault_path",
    ("vault", "include_glob"): "include_glob",
    ("vault", "exclude_paths"): "exclude_paths",
    ("vault", "debounce_seconds"): "debounce_seconds",
    ("vault", "watch"): "watch_vault",
    ("storage", "db_path"): "db_path",
    ("storage", "snapshot_path"): "snapshot_path",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "workers"): "worker_count",
    ("embeddings", "quantized"): "quantized",
    ("embeddings", "load_retries"): "model_load_retries",
    ("embeddings", "retry_base_delay"): "model_retry_base_delay",
    ("chunking", "chunk_size"): "chunk_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("chunking", "min_chunk_size"): "min_chunk_size",
    ("chunking", "keep_frontmatter"): "keep_frontmatter",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "min_score"): "min_score",
    ("scheduler", "yield_seconds"): "yield_seconds",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    vault_path: Path = Field(default=Path.cwd())
    db_path: Path = Field(default=Path.home() / ".vault-index" / "vectors.db")
    snapshot_path: Path | None = Field(default=Path.home() / ".vault-index" / "vectors.json")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_backend: Literal["hashed", "sentence-transformers"] = "hashed"
    embedding_dim: int = Field(default=384, ge=1)
    worker_count: int = 0
    quantized: bool = False
    model_load_retries: int = Field(default=3, ge=1)
    model_retry_base_delay: float = Field(default=1.0, ge=0)
    chunk_size: int = 500
    chunk_overlap: float = Field(default=0.15, ge=0, lt=1)
    min_chunk_size: int = Field(default=50, ge=0)
    keep_frontmatter: bool = False
    include_glob: str = "*.md"
    exclude_paths: list[str] = Field(default_factory=list)
    debounce_seconds: float = Field(default=0.5, ge=0)
    watch_vault: bool = True
    top_k: int = 10
    min_score: float = 0.3
    yield_seconds: float = Field(default=0.03, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("vault_path", "db_path", "snapshot_path", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path | None:
        if value is None:
            return None
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @field_validator("top_k", mode="after")
    @classmethod
    def _clamp_top_k(cls, value: int) -> int:
        return min(max(value, 1), 100)

    @field_validator("min_score", mode="after")
    @classmethod
    def _clamp_min_score(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)

    @field_validator("worker_count", mode="after")
    @classmethod
    def _clamp_worker_count(cls, value: int) -> int:
        return min(max(value, 0), 32)

    @field_validator("chunk_size", mode="after")
    @classmethod
    def _clamp_chunk_size(cls, value: int) -> int:
        return min(max(value, 1), 4096)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("exclude_paths", mode="before")
    @classmethod
    def _normalize_excludes(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        cleaned: list[str] = []
        for item in value:
            stripped = str(item).strip()
            if stripped and stripped not in cleaned:
                cleaned.append(stripped)
        return cleaned

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with VIDX_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
