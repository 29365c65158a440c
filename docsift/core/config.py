"""Application configuration handling."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from docsift.core.errors import ValidationError

ENV_PREFIX = "DOCSIFT_"
DEFAULT_CONFIG_PATH = Path("~/.config/docsift/config.yaml")
DEFAULT_DATA_DIR = Path("~/.docsift")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("paths", "data_dir"): "data_dir",
    ("paths", "db_path"): "db_path",
    ("paths", "vector_index_path"): "vector_index_path",
    ("vector", "backend"): "vector_backend",
    ("vector", "space"): "vector_space",
    ("vector", "max_elements"): "hnsw_max_elements",
    ("vector", "m"): "hnsw_m",
    ("vector", "ef_construction"): "hnsw_ef_construction",
    ("vector", "ef_search"): "hnsw_ef_search",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dimension"): "embedding_dimension",
    ("embeddings", "device"): "embedding_device",
    ("reranker", "provider"): "reranker_provider",
    ("reranker", "model"): "rerank_model",
    ("search", "top"): "top",
    ("search", "bm25_k"): "bm25_k",
    ("search", "vector_k"): "vector_k",
    ("search", "rerank_k"): "rerank_k",
    ("search", "rrf_k"): "rrf_k",
    ("chunking", "chunk_tokens"): "chunk_tokens",
    ("chunking", "overlap_tokens"): "overlap_tokens",
    ("chunking", "minimum_tokens"): "minimum_tokens",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}

_PATH_FIELDS = ("data_dir", "db_path", "vector_index_path")


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables.

    Instances are immutable and passed explicitly to the components that need
    them; there is no process-wide settings singleton.
    """

    data_dir: Path = Field(default=DEFAULT_DATA_DIR)
    db_path: Path
    vector_index_path: Path

    vector_backend: Literal["hnsw", "memory"] = "hnsw"
    vector_space: Literal["cosine", "ip", "l2"] = "cosine"
    hnsw_max_elements: int = Field(default=10_000, gt=0)
    hnsw_m: int = Field(default=16, gt=0)
    hnsw_ef_construction: int = Field(default=200, gt=0)
    hnsw_ef_search: int = Field(default=64, gt=0)

    embedding_provider: str = "hashed"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = Field(default=384, gt=0)
    embedding_device: str | None = None

    reranker_provider: str = "fuzzy"
    rerank_model: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"

    top: int = Field(default=5, gt=0)
    bm25_k: int = Field(default=50, gt=0)
    vector_k: int = Field(default=50, gt=0)
    rerank_k: int = Field(default=20, gt=0)
    rrf_k: int = Field(default=60, gt=0)

    chunk_tokens: int = Field(default=512, gt=0)
    overlap_tokens: int = Field(default=64, ge=0)
    minimum_tokens: int = Field(default=50, ge=1)

    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _derive_paths(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        derived = dict(data)
        data_dir = Path(derived.get("data_dir") or DEFAULT_DATA_DIR).expanduser()
        derived["data_dir"] = data_dir
        if not derived.get("db_path"):
            derived["db_path"] = data_dir / "docsift.db"
        if not derived.get("vector_index_path"):
            derived["vector_index_path"] = data_dir / "index.hnsw"
        return derived

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.overlap_tokens >= self.chunk_tokens:
            raise ValueError("overlap_tokens must be less than chunk_tokens")
        if self.minimum_tokens > self.chunk_tokens:
            raise ValueError("minimum_tokens must not exceed chunk_tokens")
        return self

    @classmethod
    def load(cls, **data: Any) -> "Settings":
        """Build settings, reporting problems as docsift validation errors."""
        try:
            return cls(**data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: Path | None = None, overrides: Mapping[str, Any] | None = None) -> "Settings":
        """Load YAML config, overlay env vars then explicit overrides."""
        config_path = resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, Mapping):
                raise ValidationError(f"Invalid config format: {config_path}")
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        if overrides:
            data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.load(**data)

    def to_yaml_dict(self) -> dict[str, Any]:
        """Return the nested YAML representation of these settings."""
        nested: dict[str, Any] = {}
        dumped = self.model_dump()
        for (section, key), field_name in _YAML_KEY_MAP.items():
            value = dumped[field_name]
            if isinstance(value, Path):
                value = str(value)
            nested.setdefault(section, {})[key] = value
        return nested


def resolve_config_path(path: Path | None = None) -> Path:
    if path is not None:
        return path.expanduser()
    env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def write_default_config(path: Path | None = None) -> Path:
    """Write default settings as YAML; refuses to overwrite an existing file."""
    target = resolve_config_path(path)
    if target.exists():
        raise ValidationError(f"Config file already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    defaults = Settings.load().to_yaml_dict()
    # db and index paths stay derived from data_dir
    defaults["paths"] = {"data_dir": str(DEFAULT_DATA_DIR)}
    target.write_text(yaml.safe_dump(defaults, sort_keys=False), encoding="utf-8")
    return target


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
    """Map environment variables with DOCSIFT_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or value == "":
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


__all__ = ["Settings", "resolve_config_path", "write_default_config"]
