"""Configuration, read from ``CORPUSDB_*`` environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CorpusSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CORPUSDB_", extra="ignore")

    database_root: Path = Path("database")
    workspace_root: Path = Path("workspace")
    # Extension of the per-unit single-file stores to pick up.
    unit_suffix: str = ".msgpack"
    corpus_format: Literal["msgpack", "json"] = "msgpack"
    # Directory names not descended into while scanning a workspace.
    skip_dirs: list[str] = ["source"]
    schema_path: Path | None = None
    log_level: str = "INFO"
