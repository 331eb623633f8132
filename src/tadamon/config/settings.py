"""
Settings for the matching core, its HTTP adapters and the API.

Source order (later wins):
1. packaged `tadamon/config/defaults.yaml`, or the file named by `TADAMON_CONFIG_PATH`
2. a small whitelist of environment variables (`TADAMON_BACKEND_URL`, ...), `.env` included

Radius bounds, default labels and city coordinates are data, so they live in YAML.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from tadamon.core.env import load_dotenv_if_present


def _mapping_from_yaml(text: str, source: str) -> dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{source}: top-level YAML value must be a mapping")
    return data


def _packaged_yaml(filename: str) -> dict[str, Any]:
    text = resources.files("tadamon.config").joinpath(filename).read_text(encoding="utf-8")
    return _mapping_from_yaml(text, filename)


class AppSettings(BaseModel):
    name: str = "Tadamon"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class MatchingSettings(BaseModel):
    default_radius_km: float = Field(5.0, gt=0)
    min_radius_km: float = Field(1.0, gt=0)
    max_radius_km: float = Field(50.0, gt=0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "MatchingSettings":
        if not (self.min_radius_km <= self.default_radius_km <= self.max_radius_km):
            raise ValueError("matching.default_radius_km must lie within [min_radius_km, max_radius_km]")
        return self


class LocationLabels(BaseModel):
    gps: str = "Current Location"
    map_link: str = "Shared Location"
    raw_coordinates: str = "Custom Location"


class LocationSettings(BaseModel):
    labels: LocationLabels = Field(default_factory=LocationLabels)
    # Substrings that mark pasted text as a maps share link rather than raw coordinates.
    map_link_markers: list[str] = Field(
        default_factory=lambda: ["google.com/maps", "maps.google.", "goo.gl/maps", "maps.app.goo.gl"]
    )


class BackendTables(BaseModel):
    items: str = "items"
    users: str = "users"
    sessions: str = "chat_sessions"
    participants: str = "chat_participants"
    messages: str = "messages"


class BackendSettings(BaseModel):
    base_url: str = "http://localhost:54321/rest/v1"
    api_key: str | None = None
    tables: BackendTables = Field(default_factory=BackendTables)
    anonymous_name: str = "Anonymous Neighbor"
    direct_chat_title: str = "Direct Message"
    default_counterpart_label: str = "Neighbor"


class CityDefinition(BaseModel):
    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    aliases: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)  # type: ignore
    location: LocationSettings = Field(default_factory=LocationSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    cities: dict[str, CityDefinition] = Field(default_factory=dict)


_ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "TADAMON_LOG_LEVEL": ("app", "log_level", str),
    "TADAMON_DEFAULT_RADIUS_KM": ("matching", "default_radius_km", float),
    "TADAMON_BACKEND_URL": ("backend", "base_url", str),
    "TADAMON_BACKEND_KEY": ("backend", "api_key", str),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay the whitelisted environment variables onto the raw YAML payload."""
    load_dotenv_if_present()
    data = dict(data)
    for env_name, (section, key, cast) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[section] = {**(data.get(section) or {}), key: cast(value)}
    return data


@lru_cache
def get_settings() -> Settings:
    """Validated settings (cached; call `get_settings.cache_clear()` after changing the env)."""
    load_dotenv_if_present()
    config_path = os.getenv("TADAMON_CONFIG_PATH")
    if config_path:
        raw = _mapping_from_yaml(Path(config_path).read_text(encoding="utf-8"), config_path)
    else:
        raw = _packaged_yaml("defaults.yaml")
    return Settings.model_validate(_apply_env_overrides(raw))


@lru_cache
def get_logging_config() -> dict[str, Any]:
    return _packaged_yaml("logging.yaml")
