"""Scan scheduling — weekly, on install and on demand.

The core keeps no timer of its own: the host's job runner (cron, a CMS
scheduler hook, a systemd timer) calls :meth:`ScanScheduler.run_due`
periodically, and the next due time lives in the store.
"""

from __future__ import annotations

import logging

from notrack.core import store as keys
from notrack.core.base import DetectedTracker
from notrack.core.detector import Detector

logger = logging.getLogger(__name__)

WEEK_SECONDS = 7 * 24 * 60 * 60


class ScanScheduler:
    def __init__(self, detector: Detector, interval: int = WEEK_SECONDS) -> None:
        self.detector = detector
        self.store = detector.store
        self.clock = detector.clock
        self.interval = interval

    def next_scan(self) -> int | None:
        return self.store.get(keys.NEXT_SCAN_TIME)

    def schedule(self, start: int | None = None) -> int:
        """Schedule the next scan one interval after ``start`` (default: now)."""
        base = int(self.clock()) if start is None else start
        next_time = base + self.interval
        self.store.set(keys.NEXT_SCAN_TIME, next_time)
        return next_time

    def unschedule(self) -> None:
        self.store.delete(keys.NEXT_SCAN_TIME)

    def is_due(self) -> bool:
        next_time = self.next_scan()
        return next_time is not None and self.clock() >= next_time

    async def run_now(self) -> list[DetectedTracker]:
        """Administrative rescan; also pushes the next weekly scan back."""
        detected = await self.detector.detect_tracking_tools(force=True)
        self.schedule()
        return detected

    async def run_due(self) -> list[DetectedTracker] | None:
        """Run the weekly scan if it is due. Returns None when nothing ran."""
        if not self.is_due():
            return None
        logger.info("Scheduled scan is due")
        return await self.run_now()

    async def on_install(self) -> list[DetectedTracker]:
        """One-shot scan at installation, then start the weekly schedule."""
        return await self.run_now()
