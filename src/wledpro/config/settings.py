from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "WLEDPRO_CONFIG"

SortKey = Literal["name", "address", "identity", "last_refresh"]


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class ScanningConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    timeout: float = Field(default=5.0, gt=0)


class RefreshConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    interval: float = Field(default=30.0, gt=0)
    max_in_flight: int = Field(default=8, ge=1, le=255)
    request_timeout: float = Field(default=5.0, gt=0)
    port: int = Field(default=80, ge=1, le=65535)


class DisplayConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    show_hidden_devices: bool = False
    sort_by: SortKey = "name"


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def _toml_string(value: str) -> str:
    return json.dumps(value)


def _toml_bool(value: bool) -> str:
    return "true" if value else "false"


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# wledpro configuration",
        "",
        "[database]",
        f"path = {_toml_string(settings.database.path)}",
        "",
        "[scanning]",
        f"timeout = {settings.scanning.timeout}",
        "",
        "[refresh]",
        f"interval = {settings.refresh.interval}",
        f"max_in_flight = {settings.refresh.max_in_flight}",
        f"request_timeout = {settings.refresh.request_timeout}",
        f"port = {settings.refresh.port}",
        "",
        "[display]",
        f"show_hidden_devices = {_toml_bool(settings.display.show_hidden_devices)}",
        f"sort_by = {_toml_string(settings.display.sort_by)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
