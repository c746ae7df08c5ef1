"""Configuration loading — reads optional TOML config file."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from notrack import __version__
from notrack.core.paths import DEFAULT_STATE_PATH

DEFAULT_CONFIG_PATHS = [
    Path.home() / ".config" / "notrack" / "config.toml",
    Path("notrack.toml"),
]

DEFAULT_USER_AGENT = f"NoTrack/{__version__} (tracker detection scan)"


class Settings(BaseModel):
    """Site layout and scan tuning."""

    site_url: str = "http://localhost/"
    theme_dir: Path | None = None
    child_theme_dir: Path | None = None
    extension_dirs: list[Path] = Field(default_factory=list)
    plugin_dir: Path | None = None  # our own directory, never scanned
    state_path: Path = DEFAULT_STATE_PATH
    head_timeout: float = 5.0
    body_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    verify_tls: bool = False  # the target is the local site
    cache_ttl: int = Field(default=3600, ge=0)
    scan_interval: int = Field(default=7 * 24 * 60 * 60, gt=0)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Searches default paths if no explicit path is given.
    Returns an empty dict if no config file is found.
    """
    paths = [path] if path is not None else DEFAULT_CONFIG_PATHS

    for p in paths:
        if p.exists():
            with open(p, "rb") as f:
                return tomllib.load(f)

    return {}


def get_settings(path: Path | None = None) -> Settings:
    """Build settings: env vars → config.toml → defaults."""
    config = load_config(path)
    data: dict[str, Any] = dict(config.get("notrack", config))

    site_url = os.environ.get("NOTRACK_SITE_URL")
    if site_url:
        data["site_url"] = site_url
    state_path = os.environ.get("NOTRACK_STATE_PATH")
    if state_path:
        data["state_path"] = state_path

    return Settings.model_validate(data)
