"""Shared evidence matching — keywords, known domains and id extraction."""

from __future__ import annotations

import functools
import re

from notrack.core.base import TrackerDefinition

SNIPPET_LEAD = 20
SNIPPET_LENGTH = 40


@functools.cache
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def first_capture(match: re.Match[str]) -> str:
    """First capture group, or the whole match for group-less patterns."""
    return match.group(1) if match.re.groups else match.group(0)


def find_keyword(definition: TrackerDefinition, lowered: str) -> int | None:
    """Position of the first catalog keyword found in already lower-cased text.

    Keywords are checked in catalog order and the first hit wins.
    """
    for keyword in definition.keywords:
        pos = lowered.find(keyword)
        if pos != -1:
            return pos
    return None


def match_init_pattern(definition: TrackerDefinition, text: str) -> re.Match[str] | None:
    """Return the first high-confidence initialization call match."""
    for pattern in definition.init_patterns:
        match = _compiled(pattern).search(text)
        if match:
            return match
    return None


def extract_id(definition: TrackerDefinition, text: str) -> str | None:
    """Extract a service identifier, init patterns first, then ``id_pattern``."""
    match = match_init_pattern(definition, text)
    if match:
        return first_capture(match)
    if definition.id_pattern:
        match = _compiled(definition.id_pattern).search(text)
        if match:
            return first_capture(match)
    return None


def matches_domain(definition: TrackerDefinition, url: str) -> str | None:
    """Return the known domain contained in ``url``, if any."""
    lowered = url.lower()
    for domain in definition.known_domains:
        if domain in lowered:
            return domain
    return None


def snippet(text: str, pos: int) -> str:
    """Surrounding text for evidence: 20 chars before the match, 40 in total."""
    start = max(0, pos - SNIPPET_LEAD)
    return " ".join(text[start : start + SNIPPET_LENGTH].split())
