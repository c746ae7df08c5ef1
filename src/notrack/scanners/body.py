"""Body scanner — fetch the rendered home page and inspect its HTML for trackers."""

from __future__ import annotations

import logging
from html.parser import HTMLParser

import httpx

from notrack.core.base import DetectedTracker, DetectionMethod, TrackerDefinition
from notrack.scanners.matching import (
    extract_id,
    find_keyword,
    first_capture,
    match_init_pattern,
    matches_domain,
    snippet,
)
from notrack.scanners.session import build_client

logger = logging.getLogger(__name__)

GET_TIMEOUT = 10.0

WATCHED_TAGS = frozenset({"script", "meta", "link", "iframe", "img"})
META_NAME_HINTS = ("google", "fb", "facebook", "twitter", "analytics", "pixel")
PIXEL_MAX_SIZE = 3


class _Element:
    """A watched element with its attributes and, for scripts, inline text."""

    def __init__(self, tag: str, attrs: dict[str, str]) -> None:
        self.tag = tag
        self.attrs = attrs
        self.text = ""


class _ElementExtractor(HTMLParser):
    """Collect script/meta/link/iframe/img elements from possibly malformed HTML."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.elements: list[_Element] = []
        self._script: _Element | None = None
        self._script_text: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag not in WATCHED_TAGS:
            return
        attr_dict = {name.lower(): value for name, value in attrs if value is not None}
        element = _Element(tag, attr_dict)
        self.elements.append(element)
        if tag == "script":
            self._script = element
            self._script_text = []

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.handle_starttag(tag, attrs)
        if tag == "script":
            self._close_script()

    def handle_data(self, data: str) -> None:
        if self._script is not None:
            self._script_text.append(data)

    def handle_endtag(self, tag: str) -> None:
        if tag == "script":
            self._close_script()

    def _close_script(self) -> None:
        if self._script is not None:
            self._script.text = "".join(self._script_text)
        self._script = None
        self._script_text = []

    def close(self) -> None:
        super().close()
        self._close_script()


def _parse_dimension(value: str | None) -> int | None:
    """Parse a dimension attribute like '1' or '1px' to an integer."""
    if value is None:
        return None
    cleaned = value.strip().lower().removesuffix("px").strip()
    try:
        return int(float(cleaned))
    except (ValueError, OverflowError):
        return None


def _is_pixel_sized(element: _Element) -> bool:
    width = _parse_dimension(element.attrs.get("width"))
    height = _parse_dimension(element.attrs.get("height"))
    return (width is None or width <= PIXEL_MAX_SIZE) and (
        height is None or height <= PIXEL_MAX_SIZE
    )


def extract_elements(html: str) -> list[_Element]:
    parser = _ElementExtractor()
    parser.feed(html)
    parser.close()
    return parser.elements


class _BodyMatcher:
    """Accumulates detections, reporting each service once per element type."""

    def __init__(self, catalog: dict[str, TrackerDefinition]) -> None:
        self.catalog = catalog
        self.detected: list[DetectedTracker] = []
        self._seen: set[tuple[str, str]] = set()

    def _record(
        self,
        service_id: str,
        element_type: str,
        element_data: str,
        extracted_id: str | None,
    ) -> None:
        key = (element_type, service_id)
        if key in self._seen:
            return
        self._seen.add(key)
        self.detected.append(
            DetectedTracker(
                service_id=service_id,
                detection_method=DetectionMethod.EXTERNAL_HTML,
                evidence={"element_type": element_type, "element_data": element_data},
                extracted_id=extracted_id,
            )
        )

    def check_url(self, element_type: str, url: str) -> None:
        if not url:
            return
        for service_id, definition in self.catalog.items():
            if matches_domain(definition, url):
                self._record(service_id, element_type, url, extract_id(definition, url))

    def check_text(self, element_type: str, text: str) -> None:
        """Init patterns first (high confidence id), keyword search as fallback."""
        if not text.strip():
            return
        lowered = text.lower()
        for service_id, definition in self.catalog.items():
            if (element_type, service_id) in self._seen:
                continue
            match = match_init_pattern(definition, text)
            if match:
                data = snippet(text, match.start())
                self._record(service_id, element_type, data, first_capture(match))
                continue
            pos = find_keyword(definition, lowered)
            if pos is not None:
                data = snippet(text, pos)
                self._record(service_id, element_type, data, extract_id(definition, text))


def analyze_html(html: str, catalog: dict[str, TrackerDefinition]) -> list[DetectedTracker]:
    """Inspect script, meta, link, iframe and pixel-sized img elements."""
    matcher = _BodyMatcher(catalog)

    for element in extract_elements(html):
        if element.tag == "script":
            matcher.check_url("script", element.attrs.get("src", ""))
            matcher.check_text("script", element.text)
        elif element.tag == "meta":
            name = element.attrs.get("name", "")
            if any(hint in name.lower() for hint in META_NAME_HINTS):
                matcher.check_text("meta", f"{name}: {element.attrs.get('content', '')}")
        elif element.tag == "link":
            matcher.check_url("link", element.attrs.get("href", ""))
        elif element.tag == "iframe":
            matcher.check_url("iframe", element.attrs.get("src", ""))
        elif element.tag == "img" and _is_pixel_sized(element):
            matcher.check_url("img", element.attrs.get("src", ""))

    return matcher.detected


async def scan_body(
    url: str,
    catalog: dict[str, TrackerDefinition],
    client: httpx.AsyncClient | None = None,
    timeout: float = GET_TIMEOUT,
) -> list[DetectedTracker]:
    """GET the site root and analyze its HTML. Returns [] on any failure."""
    try:
        if client is None:
            async with build_client() as own:
                response = await own.get(url, timeout=timeout)
        else:
            response = await client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning("Body scan of %s failed: %s", url, e)
        return []

    if not response.is_success:
        logger.warning("Body scan of %s returned HTTP %d", url, response.status_code)
        return []

    try:
        detected = analyze_html(response.text, catalog)
    except Exception as e:
        logger.warning("Could not parse HTML from %s: %s", url, e)
        return []

    logger.info("Body scan: %d detections", len(detected))
    return detected
