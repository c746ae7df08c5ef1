"""Client-time handler — opt-out cookie plans, browser bootstrap data and widgets."""

from __future__ import annotations

import html
from collections.abc import Mapping

from pydantic import BaseModel

from notrack.core.base import (
    ONE_YEAR_SECONDS,
    OptOutType,
    TrackerConfig,
    TrackerDefinition,
)
from notrack.core.catalog import get_supported_trackers
from notrack.core.paths import ASSETS_DIR
from notrack.enforcement.head import OPT_OUT_COOKIE, OptOutState, opt_out_state
from notrack.enforcement.snippets import js_literal

CLIENT_SCRIPT = ASSETS_DIR / "notrack.js"


class CookieWrite(BaseModel):
    """One cookie write the browser (or server) should perform."""

    name: str
    value: str
    max_age: int = ONE_YEAR_SECONDS
    path: str = "/"
    domain: str = ""
    same_site: str = "Lax"
    secure: bool = False

    def header(self) -> str:
        """Render as a Set-Cookie header value."""
        parts = [f"{self.name}={self.value}", f"Max-Age={self.max_age}", f"Path={self.path}"]
        if self.domain:
            parts.append(f"Domain={self.domain}")
        parts.append(f"SameSite={self.same_site}")
        if self.secure:
            parts.append("Secure")
        return "; ".join(parts)


def _cookie_trackers(
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None,
) -> list[TrackerDefinition]:
    if catalog is None:
        catalog = get_supported_trackers()
    return [
        definition
        for service_id, definition in catalog.items()
        if definition.opt_out_type == OptOutType.COOKIE
        and definition.opt_out_cookie is not None
        and service_id in config
        and config[service_id].enabled
    ]


def opt_out_writes(
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None = None,
    secure: bool = False,
) -> list[CookieWrite]:
    """Main opt-out cookie first, then each enabled cookie tracker's opt-out cookie."""
    writes = [CookieWrite(name=OPT_OUT_COOKIE, value="true", secure=secure)]
    cookies = [d.opt_out_cookie for d in _cookie_trackers(config, catalog) if d.opt_out_cookie]
    for cookie in cookies:
        writes.append(
            CookieWrite(
                name=cookie.name,
                value=cookie.value,
                max_age=cookie.max_age,
                path=cookie.path,
                domain=cookie.domain,
                secure=secure,
            )
        )
    return writes


def opt_in_writes(
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None = None,
    secure: bool = False,
) -> list[CookieWrite]:
    """Expire the main cookie and every tracker opt-out cookie."""
    return [
        write.model_copy(update={"value": "", "max_age": 0})
        for write in opt_out_writes(config, catalog, secure)
    ]


def preference_cookie(opt_out: bool, secure: bool = False) -> CookieWrite:
    """Server-side preference update, for form posts handled by the host."""
    return CookieWrite(name=OPT_OUT_COOKIE, value="true" if opt_out else "false", secure=secure)


def client_data(
    config: Mapping[str, TrackerConfig],
    custom_triggers: list[str],
    catalog: Mapping[str, TrackerDefinition] | None = None,
) -> dict[str, object]:
    """Data handed to assets/notrack.js as ``window.notrack_data``."""
    return {
        "cookie_name": OPT_OUT_COOKIE,
        "max_age": ONE_YEAR_SECONDS,
        "tracker_cookies": [
            {
                "service": definition.service_id,
                "name": definition.opt_out_cookie.name,
                "value": definition.opt_out_cookie.value,
                "max_age": definition.opt_out_cookie.max_age,
                "path": definition.opt_out_cookie.path,
                "domain": definition.opt_out_cookie.domain,
            }
            for definition in _cookie_trackers(config, catalog)
            if definition.opt_out_cookie is not None
        ],
        "custom_triggers": custom_triggers,
    }


def client_script() -> str:
    """The browser runtime, to be served or inlined after the bootstrap data."""
    return CLIENT_SCRIPT.read_text(encoding="utf-8")


def render_client_bootstrap(
    config: Mapping[str, TrackerConfig],
    custom_triggers: list[str],
    catalog: Mapping[str, TrackerDefinition] | None = None,
    script_url: str | None = None,
) -> str:
    """Footer markup: the data object followed by the runtime (linked or inline)."""
    data = js_literal(client_data(config, custom_triggers, catalog))
    out = f'<script type="text/javascript">window.notrack_data = {data};</script>\n'
    if script_url:
        out += f'<script type="text/javascript" src="{html.escape(script_url)}"></script>\n'
    else:
        out += f'<script type="text/javascript">\n{client_script()}</script>\n'
    return out


def render_opt_out_button(
    cookies: Mapping[str, str] | None, text: str = "Opt Out of Tracking"
) -> str:
    opted_out = opt_out_state(cookies) == OptOutState.OPTED_OUT
    action = "opt-in" if opted_out else "opt-out"
    label = "Opt In to Tracking" if opted_out else text
    return (
        f'<button id="notrack-opt-out" class="notrack-opt-out-button" data-action="{action}">'
        f"{html.escape(label)}</button>"
    )


def render_opt_out_form(
    cookies: Mapping[str, str] | None,
    config: Mapping[str, TrackerConfig],
    catalog: Mapping[str, TrackerDefinition] | None = None,
    title: str = "Tracking Preferences",
) -> str:
    """Status, toggle button and the list of enabled tracking services."""
    if catalog is None:
        catalog = get_supported_trackers()
    opted_out = opt_out_state(cookies) == OptOutState.OPTED_OUT

    parts = ['<div class="notrack-opt-out-form">', f"<h3>{html.escape(title)}</h3>"]
    status_class = "notrack-status opted-out" if opted_out else "notrack-status"
    status = "You have opted out of tracking." if opted_out else "Tracking is currently enabled."
    parts.append(f'<div class="{status_class}">{status}</div>')
    action = "opt-in" if opted_out else "opt-out"
    parts.append(
        f'<button class="notrack-opt-out-button" data-action="{action}">'
        f'{"Opt In" if opted_out else "Opt Out"}</button>'
    )

    enabled = [
        catalog[sid] for sid, c in config.items() if c.enabled and sid in catalog
    ]
    if enabled:
        parts.append('<div class="notrack-trackers-info">')
        parts.append("<h4>Tracking Services</h4>")
        parts.append("<p>The following tracking services are used on this site:</p>")
        parts.append("<ul>")
        for definition in enabled:
            parts.append(
                f"<li><strong>{html.escape(definition.label)}</strong>"
                f'<p class="description">{html.escape(definition.description)}</p></li>'
            )
        parts.append("</ul>")
        parts.append("</div>")

    parts.append("</div>")
    return "\n".join(parts)
