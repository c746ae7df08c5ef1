"""Tracker catalog — loads the declarative tracker data and applies provider hooks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import ValidationError

from notrack.core.base import TrackerDefinition
from notrack.core.paths import DATA_DIR

logger = logging.getLogger(__name__)

CATALOG_FILE = DATA_DIR / "trackers.yaml"

TrackerProvider = Callable[[dict[str, TrackerDefinition]], dict[str, TrackerDefinition]]


class CatalogError(Exception):
    """The catalog data is malformed (bad regex, duplicate id, missing field)."""


_builtin: dict[str, TrackerDefinition] | None = None
_providers: list[TrackerProvider] = []


def load_catalog(path: Path = CATALOG_FILE) -> dict[str, TrackerDefinition]:
    """Read and validate a catalog file, preserving its order."""
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"cannot read catalog {path}: {e}") from e

    catalog: dict[str, TrackerDefinition] = {}
    for entry in data.get("trackers", []):
        try:
            definition = TrackerDefinition.model_validate(entry)
        except ValidationError as e:
            raise CatalogError(f"invalid tracker in {path.name}: {e}") from e
        if definition.service_id in catalog:
            raise CatalogError(f"duplicate service_id '{definition.service_id}' in {path.name}")
        catalog[definition.service_id] = definition

    return catalog


def _builtin_catalog() -> dict[str, TrackerDefinition]:
    global _builtin
    if _builtin is None:
        _builtin = load_catalog()
        logger.debug("Loaded %d built-in trackers", len(_builtin))
    return _builtin


def register_tracker_provider(provider: TrackerProvider) -> None:
    """Add a hook that may add or remove catalog entries."""
    if provider not in _providers:
        _providers.append(provider)


def unregister_tracker_provider(provider: TrackerProvider) -> None:
    if provider in _providers:
        _providers.remove(provider)


def get_supported_trackers() -> dict[str, TrackerDefinition]:
    """Return the ordered catalog: built-in entries, then each provider applied in turn."""
    catalog = dict(_builtin_catalog())
    for provider in _providers:
        catalog = dict(provider(catalog))

    for key, definition in catalog.items():
        if key != definition.service_id:
            raise CatalogError(
                f"provider registered '{definition.service_id}' under key '{key}'"
            )
    return catalog


def get_tracker(service_id: str) -> TrackerDefinition | None:
    """Get a tracker definition by service id."""
    return get_supported_trackers().get(service_id)
