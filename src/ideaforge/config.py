"""IdeaForge process configuration.

This is the runtime configuration of the process (where data lives, which
store backend to use, timings). Provider choice and API keys are user
settings and live in the record store, see ``ideaforge.core.settings``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

VALID_BACKENDS = {"sqlite", "rest"}


@dataclass
class Config:
    """IdeaForge configuration."""

    workspace_path: Path = field(default_factory=lambda: Path.home() / ".ideaforge")
    log_level: str = "INFO"
    store_backend: str = "sqlite"
    rest_base_url: str = "http://localhost:3001"
    wal_mode: bool = True

    # Debounce window for text edits, seconds
    autosave_delay: float = 1.0

    # Completion and REST store timeout, seconds
    request_timeout: float = 120.0

    @classmethod
    def load(cls, workspace_path: Path | None = None) -> Config:
        """Load config from defaults, then YAML file, then env vars."""
        config = cls()

        env_path = os.environ.get("IDEAFORGE_WORKSPACE")
        if workspace_path:
            config.workspace_path = workspace_path
        elif env_path:
            config.workspace_path = Path(env_path)

        config_file = config.config_file
        if config_file.exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
            for key, value in data.items():
                if key == "workspace_path" or not hasattr(config, key):
                    continue
                expected_type = type(getattr(config, key))
                setattr(config, key, expected_type(value))

        env_log = os.environ.get("IDEAFORGE_LOG_LEVEL")
        if env_log:
            config.log_level = env_log

        env_store = os.environ.get("IDEAFORGE_STORE")
        if env_store:
            config.store_backend = env_store

        env_rest = os.environ.get("IDEAFORGE_REST_URL")
        if env_rest:
            config.rest_base_url = env_rest

        config.validate()
        return config

    def validate(self) -> None:
        if self.store_backend not in VALID_BACKENDS:
            raise ValueError(
                f"Invalid store_backend: {self.store_backend}. "
                f"Must be one of {sorted(VALID_BACKENDS)}"
            )
        if self.autosave_delay < 0:
            raise ValueError("autosave_delay cannot be negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    @property
    def config_file(self) -> Path:
        return self.workspace_path / "config.yaml"

    @property
    def db_path(self) -> Path:
        return self.workspace_path / "ideaforge.db"

    @property
    def settings_slot_path(self) -> Path:
        """Local settings file used when ideas live behind a REST endpoint."""
        return self.workspace_path / "app-settings.json"

    def save(self) -> None:
        """Save current config to YAML."""
        self.workspace_path.mkdir(parents=True, exist_ok=True)
        data = {
            "log_level": self.log_level,
            "store_backend": self.store_backend,
            "rest_base_url": self.rest_base_url,
            "wal_mode": self.wal_mode,
            "autosave_delay": self.autosave_delay,
            "request_timeout": self.request_timeout,
        }
        with open(self.config_file, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
