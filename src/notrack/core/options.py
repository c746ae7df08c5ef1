"""Configuration store — whitelisted, sanitized per-tracker opt-out settings."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from notrack.core import store as keys
from notrack.core.base import DetectionSnapshot, TrackerConfig, TrackerDefinition
from notrack.core.catalog import get_supported_trackers
from notrack.core.detector import load_snapshot
from notrack.core.store import KeyValueStore

logger = logging.getLogger(__name__)

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>?")
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

FALSE_STRINGS = frozenset({"", "0", "false", "off", "no"})


def sanitize_text_field(value: Any) -> str:
    """Reduce arbitrary input to a single line of plain text."""
    if value is None:
        return ""
    text = str(value)
    text = _SCRIPT_STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    text = _OCTET_RE.sub("", text)
    text = _CONTROL_RE.sub(" ", text)
    return " ".join(text.split())


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)


def sanitize_tracker_config(
    raw: Mapping[str, Any] | None,
    catalog: Mapping[str, TrackerDefinition] | None = None,
) -> dict[str, TrackerConfig]:
    """Build a config entry for every catalog tracker from untrusted input.

    Services and parameters unknown to the catalog are dropped.
    """
    if catalog is None:
        catalog = get_supported_trackers()
    raw = raw if isinstance(raw, Mapping) else {}

    sanitized: dict[str, TrackerConfig] = {}
    for service_id, definition in catalog.items():
        entry = raw.get(service_id)
        entry = entry if isinstance(entry, Mapping) else {}
        params = entry.get("parameters")
        params = params if isinstance(params, Mapping) else {}

        sanitized[service_id] = TrackerConfig(
            service_id=service_id,
            enabled=as_bool(entry.get("enabled", False)),
            parameters={
                name: sanitize_text_field(params.get(name)) for name in definition.parameters
            },
            id=sanitize_text_field(entry.get("id")),
        )
    return sanitized


def parse_triggers(text: str) -> list[str]:
    """Split the comma-separated custom trigger list into selectors."""
    return [s.strip() for s in text.split(",") if s.strip()]


class ConfigurationStore:
    """Reads and writes tracker config and custom triggers through a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        catalog_provider: Callable[[], dict[str, TrackerDefinition]] = get_supported_trackers,
    ) -> None:
        self.store = store
        self.catalog_provider = catalog_provider

    def _dump(self, config: Mapping[str, TrackerConfig]) -> dict[str, Any]:
        return {
            sid: c.model_dump(mode="json", exclude={"service_id"}) for sid, c in config.items()
        }

    def get_config(self) -> dict[str, TrackerConfig]:
        """Current config for every catalog tracker, re-sanitized on read."""
        raw = self.store.get(keys.TRACKER_CONFIG, {})
        return sanitize_tracker_config(raw, self.catalog_provider())

    def set_config(self, raw: Mapping[str, Any]) -> dict[str, TrackerConfig]:
        config = sanitize_tracker_config(raw, self.catalog_provider())
        self.store.set(keys.TRACKER_CONFIG, self._dump(config))
        return config

    def update_tracker(
        self,
        service_id: str,
        *,
        enabled: bool | None = None,
        tracker_id: str | None = None,
        parameters: Mapping[str, str] | None = None,
    ) -> TrackerConfig | None:
        """Change one tracker's settings. Returns None for unknown services."""
        raw = self._dump(self.get_config())
        if service_id not in raw:
            return None
        entry = raw[service_id]
        if enabled is not None:
            entry["enabled"] = enabled
        if tracker_id is not None:
            entry["id"] = tracker_id
        if parameters:
            entry["parameters"].update(parameters)
        return self.set_config(raw)[service_id]

    def enabled_trackers(self) -> list[tuple[TrackerDefinition, TrackerConfig]]:
        catalog = self.catalog_provider()
        return [
            (catalog[sid], config)
            for sid, config in self.get_config().items()
            if config.enabled and sid in catalog
        ]

    def enable_detected_trackers(self, snapshot: DetectionSnapshot | None = None) -> list[str]:
        """Enable every detected tracker and seed empty ids from the detection.

        Returns the service ids that were newly enabled.
        """
        if snapshot is None:
            snapshot = load_snapshot(self.store)
        catalog = self.catalog_provider()
        raw = self._dump(self.get_config())

        newly_enabled: list[str] = []
        for detection in snapshot.trackers:
            entry = raw.get(detection.service_id)
            if entry is None or entry["enabled"]:
                continue
            entry["enabled"] = True
            newly_enabled.append(detection.service_id)

            has_manual_id = bool(entry["id"]) or any(entry["parameters"].values())
            if detection.extracted_id and not has_manual_id:
                entry["id"] = detection.extracted_id
                params = catalog[detection.service_id].parameters
                if params:
                    entry["parameters"][params[0]] = detection.extracted_id

        if newly_enabled:
            self.set_config(raw)
            logger.info("Enabled detected trackers: %s", ", ".join(newly_enabled))
        return newly_enabled

    def get_custom_triggers(self) -> list[str]:
        return parse_triggers(self.store.get(keys.CUSTOM_TRIGGERS, ""))

    def set_custom_triggers(self, text: str) -> list[str]:
        """Store the selectors as given, only trimmed and re-joined."""
        selectors = parse_triggers(text)
        self.store.set(keys.CUSTOM_TRIGGERS, ", ".join(selectors))
        return selectors
