"""Application configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass(frozen=True)
class LLMConfig:
    model: str = "claude-haiku-4-5-20251001"
    timeout: int = 60
    max_tokens: int = 4096
    temperature: float = 0.0


@dataclass(frozen=True)
class AnalysisConfig:
    min_text_length: int = 50
    fallback_score: int = 50


@dataclass(frozen=True)
class StorageConfig:
    documents_dir: str = "~/.cv-screener/documents"
    db_path: str = "~/.cv-screener/jobs.db"

    @property
    def resolved_documents_dir(self) -> Path:
        return Path(self.documents_dir).expanduser()

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**raw.get("llm", {})),
        analysis=AnalysisConfig(**raw.get("analysis", {})),
        storage=StorageConfig(**raw.get("storage", {})),
    )
