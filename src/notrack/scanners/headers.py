"""Header scanner — look for tracker fingerprints in the site's response headers."""

from __future__ import annotations

import logging

import httpx

from notrack.core.base import DetectedTracker, DetectionMethod, TrackerDefinition
from notrack.scanners.matching import extract_id, matches_domain
from notrack.scanners.session import build_client

logger = logging.getLogger(__name__)

HEAD_TIMEOUT = 5.0

# Response headers that identify a specific service
HEADER_SERVICES: dict[str, str] = {
    "x-fb-debug": "facebook_pixel",
    "x-fb-trace-id": "facebook_pixel",
    "x-ga-measurement-id": "google_analytics",
    "x-gtm-server-preview": "google_tag_manager",
    "x-hs-hub-id": "hubspot",
    "x-hs-cache-config": "hubspot",
    "x-clarity-project-id": "microsoft_clarity",
}

ANALYTICS_HEADER = "x-analytics"

# Substrings of X-Analytics keys, checked in order
ANALYTICS_KEY_SERVICES: list[tuple[str, str]] = [
    ("google", "google_analytics"),
    ("ga", "google_analytics"),
    ("facebook", "facebook_pixel"),
    ("fb", "facebook_pixel"),
]


def _header_detection(
    service_id: str, name: str, value: str, extracted_id: str | None
) -> DetectedTracker:
    return DetectedTracker(
        service_id=service_id,
        detection_method=DetectionMethod.HEADER,
        evidence={"header_name": name, "header_value": value},
        extracted_id=extracted_id or None,
    )


def _parse_analytics_header(
    name: str, value: str, catalog: dict[str, TrackerDefinition]
) -> list[DetectedTracker]:
    """Parse ``X-Analytics: ga=UA-1-1, fb=123`` style key=value pairs."""
    detected: list[DetectedTracker] = []
    for pair in value.split(","):
        key, sep, raw = pair.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        raw = raw.strip()
        for needle, service_id in ANALYTICS_KEY_SERVICES:
            if needle in key and service_id in catalog:
                extracted = extract_id(catalog[service_id], raw) or raw
                detected.append(
                    _header_detection(service_id, name, pair.strip(), extracted)
                )
                break
    return detected


def analyze_headers(
    headers: httpx.Headers, catalog: dict[str, TrackerDefinition]
) -> list[DetectedTracker]:
    """Match response headers against the lookup table, X-Analytics and Link values."""
    detected: list[DetectedTracker] = []

    for name, value in headers.multi_items():
        lname = name.lower()

        service_id = HEADER_SERVICES.get(lname)
        if service_id is not None and service_id in catalog:
            extracted = extract_id(catalog[service_id], value) or value
            detected.append(_header_detection(service_id, name, value, extracted))

        if lname == ANALYTICS_HEADER:
            detected.extend(_parse_analytics_header(name, value, catalog))

        if lname == "link":
            for sid, definition in catalog.items():
                if matches_domain(definition, value):
                    detected.append(
                        _header_detection(sid, name, value, extract_id(definition, value))
                    )

    return detected


async def scan_headers(
    url: str,
    catalog: dict[str, TrackerDefinition],
    client: httpx.AsyncClient | None = None,
    timeout: float = HEAD_TIMEOUT,
) -> list[DetectedTracker]:
    """HEAD the site root and inspect its headers. Returns [] on any transport failure."""
    try:
        if client is None:
            async with build_client() as own:
                response = await own.head(url, timeout=timeout)
        else:
            response = await client.head(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning("Header scan of %s failed: %s", url, e)
        return []

    if not response.is_success:
        logger.warning("Header scan of %s returned HTTP %d", url, response.status_code)
        return []

    detected = analyze_headers(response.headers, catalog)
    logger.info("Header scan: %d detections", len(detected))
    return detected
