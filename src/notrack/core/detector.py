"""Detection aggregator — run all scanners, dedupe, persist the snapshot."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

import httpx

from notrack.core import store as keys
from notrack.core.base import DetectedTracker, DetectionSnapshot, TrackerDefinition
from notrack.core.catalog import get_supported_trackers
from notrack.core.config import Settings
from notrack.core.store import KeyValueStore
from notrack.scanners.body import scan_body
from notrack.scanners.files import scan_files, scan_roots
from notrack.scanners.headers import scan_headers
from notrack.scanners.session import build_client

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10 * 60  # a scan holding the lock longer than this is presumed dead


class ScanInProgressError(RuntimeError):
    """Another scan currently holds the lock for this site."""


def deduplicate(detections: Iterable[DetectedTracker]) -> list[DetectedTracker]:
    """Keep the first detection per service_id, preserving order."""
    seen: set[str] = set()
    unique: list[DetectedTracker] = []
    for detection in detections:
        if detection.service_id in seen:
            continue
        seen.add(detection.service_id)
        unique.append(detection)
    return unique


def load_snapshot(store: KeyValueStore) -> DetectionSnapshot:
    """Read the persisted detection snapshot (empty if never scanned)."""
    raw = store.get(keys.DETECTED_TOOLS, [])
    trackers: list[DetectedTracker] = []
    for item in raw if isinstance(raw, list) else []:
        try:
            trackers.append(DetectedTracker.model_validate(item))
        except ValueError:
            logger.debug("Dropping malformed detection record %r", item)
    return DetectionSnapshot(trackers=trackers, last_scan_time=store.get(keys.LAST_SCAN_TIME))


class Detector:
    """Runs the file, header and body scanners as one guarded scan."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        catalog_provider: Callable[[], dict[str, TrackerDefinition]] = get_supported_trackers,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.store = store
        self.catalog_provider = catalog_provider
        self.transport = transport
        self.clock = clock

    def is_scanning(self) -> bool:
        started = self.store.get(keys.SCAN_LOCK)
        return started is not None and self.clock() - started < LOCK_TIMEOUT

    def _acquire(self) -> None:
        now = self.clock()
        if self.store.add(keys.SCAN_LOCK, now):
            return
        started = self.store.get(keys.SCAN_LOCK)
        if started is not None and now - started < LOCK_TIMEOUT:
            raise ScanInProgressError("a tracker scan is already running")
        logger.warning("Breaking stale scan lock from %s", started)
        self.store.delete(keys.SCAN_LOCK)
        if not self.store.add(keys.SCAN_LOCK, now):
            raise ScanInProgressError("a tracker scan is already running")

    def _release(self) -> None:
        self.store.delete(keys.SCAN_LOCK)

    def _cached(self) -> list[DetectedTracker] | None:
        last_scan = self.store.get(keys.LAST_SCAN_TIME)
        if last_scan is None or self.clock() - last_scan >= self.settings.cache_ttl:
            return None
        return load_snapshot(self.store).trackers

    async def _run_scanners(
        self, catalog: dict[str, TrackerDefinition]
    ) -> list[DetectedTracker]:
        roots = scan_roots(self.settings)
        async with build_client(
            self.settings.user_agent, self.settings.verify_tls, self.transport
        ) as client:
            file_results, header_results, body_results = await asyncio.gather(
                asyncio.to_thread(scan_files, roots, catalog),
                scan_headers(
                    self.settings.site_url, catalog, client, timeout=self.settings.head_timeout
                ),
                scan_body(
                    self.settings.site_url, catalog, client, timeout=self.settings.body_timeout
                ),
            )
        return [*file_results, *header_results, *body_results]

    async def detect_tracking_tools(self, force: bool = False) -> list[DetectedTracker]:
        """Scan the site and replace the persisted detection snapshot.

        Served from the last snapshot when it is younger than ``cache_ttl``
        unless ``force`` is set. Raises ScanInProgressError if another scan
        holds the lock.
        """
        if not force:
            cached = self._cached()
            if cached is not None:
                logger.debug("Serving cached scan results (%d trackers)", len(cached))
                return cached

        self._acquire()
        try:
            catalog = self.catalog_provider()
            detected = deduplicate(await self._run_scanners(catalog))
            self.store.set(keys.DETECTED_TOOLS, [d.model_dump(mode="json") for d in detected])
            self.store.set(keys.LAST_SCAN_TIME, int(self.clock()))
        finally:
            self._release()

        logger.info("Scan complete: %d trackers detected", len(detected))
        return detected
