from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "gateway",
    "llm_model": "google/gemini-2.5-flash",
    "gateway_url": "https://ai.gateway.lovable.dev/v1/chat/completions",
    "gateway_api_key_env": "LOVABLE_API_KEY",
    "ollama_url": "http://localhost:11434",
    "request_timeout": 60.0,
    "difficulty": "medium",
    "question_count": 5,
    "catalogue_files": [],
    "db_path": "arfolk.db",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    gateway_url: str = DEFAULTS["gateway_url"]
    gateway_api_key_env: str = DEFAULTS["gateway_api_key_env"]
    ollama_url: str = DEFAULTS["ollama_url"]
    request_timeout: float = DEFAULTS["request_timeout"]
    difficulty: str = DEFAULTS["difficulty"]
    question_count: int = DEFAULTS["question_count"]
    catalogue_files: list[str] = field(default_factory=lambda: list(DEFAULTS["catalogue_files"]))
    db_path: str = DEFAULTS["db_path"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    def resolved_catalogue_files(self) -> list[Path]:
        if self.catalogue_files:
            root = self.project_root
            return [root / f for f in self.catalogue_files]
        return sorted(self.data_dir.glob("*.md"))

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "gateway_url": self.gateway_url,
            "gateway_api_key_env": self.gateway_api_key_env,
            "ollama_url": self.ollama_url,
            "request_timeout": self.request_timeout,
            "difficulty": self.difficulty,
            "question_count": self.question_count,
            "catalogue_files": self.catalogue_files,
            "db_path": self.db_path,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
