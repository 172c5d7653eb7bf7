from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


def _resolve_home() -> Path:
    override = os.getenv("BOARD_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).parent.resolve()


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    return Path(value).expanduser() if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    return int(value) if value else default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


class Settings(BaseModel):
    home: Path = Field(default_factory=_resolve_home)
    data_dir: Path = Field(default_factory=lambda: _resolve_home() / "data")
    database_path: Path = Field(
        default_factory=lambda: _env_path("BOARD_DB_PATH", _resolve_home() / "data" / "board.db")
    )

    session_cookie: str = "session_token"
    session_days: int = Field(default_factory=lambda: _env_int("BOARD_SESSION_DAYS", 30))
    cookie_secure: bool = Field(default_factory=lambda: _env_bool("BOARD_COOKIE_SECURE"))
    password_min_length: int = 6
    password_iterations: int = Field(default_factory=lambda: _env_int("BOARD_PASSWORD_ITERATIONS", 310_000))

    host: str = Field(default_factory=lambda: os.getenv("BOARD_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: _env_int("BOARD_PORT", 8001))

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_directories()
    return settings
