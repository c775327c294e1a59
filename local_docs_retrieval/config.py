from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .ingest.html_parser import DEFAULT_KNOWN_SECTIONS
from .ingest.normalize import DEFAULT_MAX_CHUNK_TOKENS, DEFAULT_MAX_RESPONSE_TOKENS

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# env var -> settings field
ENV_OVERRIDES = {
    "DOCS_BASE_URL": "doc_base_url",
    "DOCS_DEFAULT_VERSION": "default_version",
    "DOCS_LOCAL_PATH": "local_doc_path",
    "DOCS_CACHE_DIR": "cache_dir",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    doc_base_url: str = "https://docs.example.com/"
    default_version: str = "latest"
    local_doc_path: Optional[str] = None
    cache_dir: str = "./cache"
    log_dir: str = "./logs"
    log_level: str = "INFO"

    max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS
    max_response_tokens: int = DEFAULT_MAX_RESPONSE_TOKENS

    # online fetching
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    rate_limit_requests: int = 10
    rate_limit_window: float = 5.0   # seconds
    fetch_cache_ttl: float = 60.0    # seconds
    user_agent: str = "local-docs-retrieval/0.1.0"

    known_sections: List[str] = Field(default_factory=lambda: list(DEFAULT_KNOWN_SECTIONS))
    versions: List[str] = Field(default_factory=lambda: ["latest"])
    sections: List[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        upper = v.strip().upper()
        if upper == "WARN":
            upper = "WARNING"
        if upper not in VALID_LOG_LEVELS:
            raise ValueError(f"must be one of: {', '.join(VALID_LOG_LEVELS)}")
        return upper

    @field_validator("doc_base_url")
    @classmethod
    def _check_base_url(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"not an http(s) URL: {v}")
        return v if v.endswith("/") else v + "/"

    @field_validator("local_doc_path")
    @classmethod
    def _check_local_path(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        p = Path(v).expanduser().resolve()
        if not p.is_dir():
            raise ValueError(f"not a readable directory: {p}")
        return str(p)

    @property
    def base_path(self) -> str:
        return urlsplit(self.doc_base_url).path

    @property
    def timeouts(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


def load_config(path: Optional[str | Path] = None) -> Settings:
    """YAML file (if present) < environment variables."""
    data: dict = {}
    if path is not None and Path(path).exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must hold a mapping: {path}")

    for env, field in ENV_OVERRIDES.items():
        val = os.getenv(env)
        if val:
            data[field] = val

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", details={"path": str(path) if path else None}) from e
