"""NoTrack facade — the whole contract the admin UI / REST layer needs."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from notrack.core.base import DetectionSnapshot, ScanStatus, TrackerConfig
from notrack.core.catalog import get_supported_trackers
from notrack.core.config import Settings
from notrack.core.detector import Detector, load_snapshot
from notrack.core.options import ConfigurationStore
from notrack.core.scheduler import ScanScheduler
from notrack.core.store import KeyValueStore, SqliteStore
from notrack.enforcement.client import render_client_bootstrap
from notrack.enforcement.head import render_head


class NoTrack:
    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.store = store if store is not None else SqliteStore(settings.state_path)
        self.detector = Detector(settings, self.store, transport=transport)
        self.scheduler = ScanScheduler(self.detector, interval=settings.scan_interval)
        self.options = ConfigurationStore(self.store)

    # --- detection ---------------------------------------------------------

    async def scan(self, force: bool = False) -> DetectionSnapshot:
        """Scan (or serve the cached snapshot) and return the persisted snapshot."""
        if force:
            await self.scheduler.run_now()
        else:
            await self.detector.detect_tracking_tools()
        return self.get_snapshot()

    async def scan_now(self) -> DetectionSnapshot:
        return await self.scan(force=True)

    def get_snapshot(self) -> DetectionSnapshot:
        return load_snapshot(self.store)

    def get_scan_status(self) -> ScanStatus:
        return ScanStatus(
            last_scan=self.get_snapshot().last_scan_time,
            next_scan=self.scheduler.next_scan(),
            in_progress=self.detector.is_scanning(),
        )

    async def install(self) -> DetectionSnapshot:
        """Installation hook: one scan, weekly schedule, detected trackers enabled."""
        await self.scheduler.on_install()
        self.options.enable_detected_trackers()
        return self.get_snapshot()

    # --- configuration -----------------------------------------------------

    def get_config(self) -> dict[str, TrackerConfig]:
        return self.options.get_config()

    def set_config(self, raw: Mapping[str, Any]) -> dict[str, TrackerConfig]:
        return self.options.set_config(raw)

    # --- page rendering ----------------------------------------------------

    def render_head(self, cookies: Mapping[str, str] | None) -> str:
        return render_head(cookies, self.get_config(), get_supported_trackers())

    def render_footer(self, script_url: str | None = None) -> str:
        return render_client_bootstrap(
            self.get_config(),
            self.options.get_custom_triggers(),
            get_supported_trackers(),
            script_url=script_url,
        )
