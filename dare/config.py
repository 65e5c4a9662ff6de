from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

_ENV_OVERRIDES = {
    "DARE_DATABASE_URL": "database_url",
    "DARE_LOG_LEVEL": "log_level",
    "DARE_ENFORCE_PERMISSIONS": "enforce_permissions",
    "DARE_BCRYPT_ROUNDS": "bcrypt_rounds",
    "DARE_HOST": "host",
    "DARE_PORT": "port",
}


def _resolve_home() -> Path:
    override = os.getenv("DARE_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.cwd().resolve()


class Settings(BaseModel):
    home: Path = Field(default_factory=_resolve_home)
    data_dir: Path = Field(default_factory=lambda: _resolve_home() / "data")
    database_url: str = ""

    log_level: str = "INFO"
    enforce_permissions: bool = False
    bcrypt_rounds: int = 12
    max_active_owners: int = 3

    host: str = "127.0.0.1"
    port: int = 8001

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'dare.db'}"


def load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        return {}
    return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    values: dict[str, Any] = {}
    config_file = os.getenv("DARE_CONFIG", "").strip()
    if config_file:
        values.update(load_yaml(Path(config_file).expanduser()))
    for env_name, field in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name, "").strip()
        if raw:
            values[field] = raw
    return Settings(**values)
