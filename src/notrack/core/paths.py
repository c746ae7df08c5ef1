"""Package data and state directory resolution."""

from __future__ import annotations

from pathlib import Path

# src/notrack/core/paths.py → src/notrack/
PACKAGE_DIR = Path(__file__).resolve().parent.parent

DATA_DIR = PACKAGE_DIR / "data"
ASSETS_DIR = PACKAGE_DIR / "enforcement" / "assets"

DEFAULT_STATE_PATH = Path.home() / ".local" / "share" / "notrack" / "state.db"
