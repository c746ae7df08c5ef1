"""Tests for the detection aggregator."""

import pytest

from notrack.core import store as keys
from notrack.core.base import DetectedTracker, DetectionMethod
from notrack.core.detector import (
    LOCK_TIMEOUT,
    Detector,
    ScanInProgressError,
    deduplicate,
    load_snapshot,
)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _detection(service_id, method="file"):
    return DetectedTracker(service_id=service_id, detection_method=method)


def test_deduplicate_keeps_first():
    detections = [
        _detection("google_analytics", "file"),
        _detection("hotjar", "file"),
        _detection("google_analytics", "external_html"),
    ]
    unique = deduplicate(detections)
    assert [d.service_id for d in unique] == ["google_analytics", "hotjar"]
    assert unique[0].detection_method == DetectionMethod.FILE


def test_load_snapshot_empty(store):
    snapshot = load_snapshot(store)
    assert snapshot.trackers == []
    assert snapshot.last_scan_time is None


def test_load_snapshot_drops_malformed_records(store):
    store.set(
        keys.DETECTED_TOOLS,
        [
            {"service_id": "hotjar", "detection_method": "file", "evidence": {"file": "a.js"}},
            {"service_id": "broken", "detection_method": "telepathy"},
            "garbage",
        ],
    )
    snapshot = load_snapshot(store)
    assert [t.service_id for t in snapshot.trackers] == ["hotjar"]


@pytest.mark.asyncio
async def test_detect_combines_all_scanners(settings, store, transport):
    detector = Detector(settings, store, transport=transport)
    detected = await detector.detect_tracking_tools()

    by_service = {d.service_id: d for d in detected}
    assert list(by_service) == [
        "google_analytics",
        "hotjar",
        "facebook_pixel",
        "google_tag_manager",
    ]
    # file evidence wins over the same tracker seen in the page
    assert by_service["google_analytics"].detection_method == DetectionMethod.FILE
    assert by_service["google_analytics"].extracted_id == "G-ABC1234"
    assert by_service["hotjar"].extracted_id == "3141592"
    # the vendored copy in node_modules is never scanned, so the header wins
    assert by_service["facebook_pixel"].detection_method == DetectionMethod.HEADER
    assert by_service["google_tag_manager"].detection_method == DetectionMethod.EXTERNAL_HTML
    assert by_service["google_tag_manager"].extracted_id == "GTM-ABCD12"


@pytest.mark.asyncio
async def test_detect_persists_snapshot(settings, store, transport):
    clock = FakeClock()
    detector = Detector(settings, store, transport=transport, clock=clock)
    detected = await detector.detect_tracking_tools()

    snapshot = load_snapshot(store)
    assert snapshot.trackers == detected
    assert snapshot.last_scan_time == int(clock.now)
    assert store.get(keys.SCAN_LOCK) is None


@pytest.mark.asyncio
async def test_forced_scans_are_idempotent(settings, store, transport):
    detector = Detector(settings, store, transport=transport)
    await detector.detect_tracking_tools(force=True)
    first = store.get(keys.DETECTED_TOOLS)
    await detector.detect_tracking_tools(force=True)
    assert store.get(keys.DETECTED_TOOLS) == first


@pytest.mark.asyncio
async def test_cached_result_served_within_ttl(settings, store, make_transport):
    calls = []
    clock = FakeClock()
    detector = Detector(settings, store, transport=make_transport(calls=calls), clock=clock)

    await detector.detect_tracking_tools()
    assert sorted(calls) == ["GET", "HEAD"]

    clock.now += settings.cache_ttl - 1
    await detector.detect_tracking_tools()
    assert len(calls) == 2

    await detector.detect_tracking_tools(force=True)
    assert len(calls) == 4

    clock.now += settings.cache_ttl
    await detector.detect_tracking_tools()
    assert len(calls) == 6


@pytest.mark.asyncio
async def test_unreachable_site_still_scans_files(settings, store, make_transport):
    detector = Detector(settings, store, transport=make_transport(status_code=503))
    detected = await detector.detect_tracking_tools()
    assert [d.service_id for d in detected] == ["google_analytics", "hotjar"]


@pytest.mark.asyncio
async def test_concurrent_scan_rejected(settings, store, transport):
    clock = FakeClock()
    store.add(keys.SCAN_LOCK, clock.now - 5)
    detector = Detector(settings, store, transport=transport, clock=clock)

    assert detector.is_scanning()
    with pytest.raises(ScanInProgressError):
        await detector.detect_tracking_tools(force=True)
    assert load_snapshot(store).trackers == []


@pytest.mark.asyncio
async def test_stale_lock_is_broken(settings, store, transport):
    clock = FakeClock()
    store.add(keys.SCAN_LOCK, clock.now - LOCK_TIMEOUT - 1)
    detector = Detector(settings, store, transport=transport, clock=clock)

    assert not detector.is_scanning()
    detected = await detector.detect_tracking_tools(force=True)
    assert detected
    assert store.get(keys.SCAN_LOCK) is None


@pytest.mark.asyncio
async def test_lock_released_on_failure(settings, store, transport):
    def broken_catalog():
        raise RuntimeError("catalog unavailable")

    detector = Detector(settings, store, catalog_provider=broken_catalog, transport=transport)
    with pytest.raises(RuntimeError):
        await detector.detect_tracking_tools(force=True)
    assert store.get(keys.SCAN_LOCK) is None


@pytest.mark.asyncio
async def test_file_detection_beats_header(settings, store, transport, theme_dir):
    (theme_dir / "footer.php").write_text("<script>fbq('init', '123456789012345');</script>")
    detector = Detector(settings, store, transport=transport)
    detected = await detector.detect_tracking_tools()

    facebook = [d for d in detected if d.service_id == "facebook_pixel"]
    assert len(facebook) == 1
    assert facebook[0].detection_method == DetectionMethod.FILE
    assert facebook[0].evidence["file"].endswith("footer.php")
    assert facebook[0].extracted_id == "123456789012345"
