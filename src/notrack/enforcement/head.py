"""Head-time emitter — suppress enabled script trackers for opted-out visitors.

Output must be placed at the very top of <head>, before any third-party
script tag.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum

from notrack.core.base import OptOutType, TrackerConfig, TrackerDefinition
from notrack.core.catalog import get_supported_trackers
from notrack.enforcement.snippets import get_suppressor

logger = logging.getLogger(__name__)

OPT_OUT_COOKIE = "notrack_opted_out"


class OptOutState(StrEnum):
    TRACKING = "tracking"
    OPTED_OUT = "opted_out"


def opt_out_state(cookies: Mapping[str, str] | None) -> OptOutState:
    """Derive the visitor's state from the request cookies.

    Anything but the literal "true" (including unreadable cookies) is the
    default tracking state.
    """
    if not cookies:
        return OptOutState.TRACKING
    try:
        value = cookies.get(OPT_OUT_COOKIE)
    except Exception:
        logger.debug("Opt-out cookie unreadable, assuming tracking")
        return OptOutState.TRACKING
    return OptOutState.OPTED_OUT if value == "true" else OptOutState.TRACKING


def suppression_snippets(
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None = None,
) -> list[str]:
    """Snippets for every enabled script tracker known to the catalog, in catalog order."""
    if catalog is None:
        catalog = get_supported_trackers()

    snippets: list[str] = []
    for service_id, definition in catalog.items():
        tracker_config = config.get(service_id)
        if tracker_config is None or not tracker_config.enabled:
            continue
        if definition.opt_out_type != OptOutType.SCRIPT:
            continue
        build = get_suppressor(service_id)
        if build is None:
            logger.debug("No suppressor registered for %s, skipping", service_id)
            continue
        snippets.append(f"// {definition.label}\n{build(tracker_config)}")
    return snippets


def render_head(
    cookies: Mapping[str, str] | None,
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None = None,
) -> str:
    """The <script> block to emit at the top of <head>, or "" when tracking is allowed."""
    if opt_out_state(cookies) != OptOutState.OPTED_OUT:
        return ""

    snippets = suppression_snippets(config, catalog)
    if not snippets:
        return ""

    body = "\n".join(snippets)
    return (
        '<script type="text/javascript">\n'
        "(function() {\n"
        f"{body}\n"
        "console.log('NoTrack: User has opted out of tracking. Tracking scripts disabled.');\n"
        "})();\n"
        "</script>\n"
    )
