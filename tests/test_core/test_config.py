"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from notrack.core.config import Settings, get_settings, load_config


def test_defaults():
    settings = Settings()
    assert settings.site_url == "http://localhost/"
    assert settings.cache_ttl == 3600
    assert settings.scan_interval == 7 * 24 * 60 * 60
    assert settings.verify_tls is False
    assert settings.extension_dirs == []


def test_load_missing_config(tmp_path):
    assert load_config(tmp_path / "missing.toml") == {}


def test_get_settings_from_toml(tmp_path, monkeypatch):
    monkeypatch.delenv("NOTRACK_SITE_URL", raising=False)
    monkeypatch.delenv("NOTRACK_STATE_PATH", raising=False)
    path = tmp_path / "config.toml"
    path.write_text(
        "[notrack]\n"
        'site_url = "https://example.org/"\n'
        'theme_dir = "/srv/site/themes/main"\n'
        'extension_dirs = ["/srv/site/plugins/shop"]\n'
        "cache_ttl = 60\n"
    )
    settings = get_settings(path)
    assert settings.site_url == "https://example.org/"
    assert settings.theme_dir == Path("/srv/site/themes/main")
    assert settings.extension_dirs == [Path("/srv/site/plugins/shop")]
    assert settings.cache_ttl == 60


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text('site_url = "https://from-file.org/"\n')
    monkeypatch.setenv("NOTRACK_SITE_URL", "https://from-env.org/")
    monkeypatch.setenv("NOTRACK_STATE_PATH", str(tmp_path / "env.db"))
    settings = get_settings(path)
    assert settings.site_url == "https://from-env.org/"
    assert settings.state_path == tmp_path / "env.db"


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        Settings(scan_interval=0)
    with pytest.raises(ValidationError):
        Settings(cache_ttl=-1)
