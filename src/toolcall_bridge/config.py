"""Application settings loaded from config.yaml and the environment."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .utils.logging import LogEvent, LogRecord, warning

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_MODELS = [
    "gpt-4o-mini",
    "claude-3-haiku-20240307",
    "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
    "mistralai/Mistral-Small-24B-Instruct-2501",
]


def resolve_path(path: str) -> Path:
    """Resolve a relative path against the working directory, then the project root."""
    candidate = Path(path)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    return PROJECT_ROOT / candidate


class BackendSettings:
    """Connection settings for the upstream chat backend."""

    def __init__(self):
        self.url: str = ""
        self.timeout: float = 30.0
        self.headers: Dict[str, str] = {}
        self.max_requests_per_minute: int = 20
        self.min_request_interval: float = 1.0

    def update(self, values: Dict[str, Any]) -> None:
        for key, value in (values or {}).items():
            if hasattr(self, key):
                setattr(self, key, value)


class Settings:
    """Application settings with defaults, overridden by config file and environment."""

    def __init__(self, config_path: Optional[str] = "config.yaml"):
        # Default values
        self.app_name: str = "toolcall-bridge"
        self.app_version: str = "0.1.0"
        self.host: str = "127.0.0.1"
        self.port: int = 3000
        self.log_level: str = "INFO"
        self.log_file_path: str = ""
        self.log_color: bool = True
        self.cors_origins: List[str] = ["*"]
        self.token_encoder: str = "cl100k_base"
        self.stream_words_per_chunk: int = 1
        self.stream_chunk_delay: float = 0.0
        self.models: List[str] = list(DEFAULT_MODELS)
        self.model_owner: str = "duckai"
        self.rate_limit_log_interval: float = 0.0
        self.backend = BackendSettings()

        if config_path:
            self.load_from_config(config_path)
        self.load_from_env()

    def load_from_config(self, config_path: str) -> None:
        """Load settings from configuration file."""
        path = resolve_path(config_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            warning(
                LogRecord(
                    event=LogEvent.CONFIG_LOAD_FAILED.value,
                    message=f"Failed to load settings from {path}, using defaults",
                    data={"config_path": str(path)},
                ),
                exc=e,
            )
            return
        self.update(config.get("settings", {}))

    def update(self, values: Dict[str, Any]) -> None:
        for key, value in (values or {}).items():
            if key == "backend":
                self.backend.update(value)
            elif hasattr(self, key):
                # Special handling for log file path
                if key == "log_file_path" and value and not os.path.isabs(value):
                    value = str(PROJECT_ROOT / value)
                setattr(self, key, value)

    def load_from_env(self) -> None:
        if os.environ.get("PORT"):
            self.port = int(os.environ["PORT"])
        if os.environ.get("HOST"):
            self.host = os.environ["HOST"]
        if os.environ.get("BACKEND_URL"):
            self.backend.url = os.environ["BACKEND_URL"]
