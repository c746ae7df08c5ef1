"""Per-service suppression snippets emitted into <head> for opted-out visitors.

Each snippet must run before the service's own loader: most loaders bail out
when their global function already exists, so defining a no-op stand-in (or
setting the documented disable flag) pre-empts them.
"""

from __future__ import annotations

import json
from collections.abc import Callable

from notrack.core.base import TrackerConfig

Suppressor = Callable[[TrackerConfig], str]

_SUPPRESSORS: dict[str, Suppressor] = {}


def suppressor(service_id: str) -> Callable[[Suppressor], Suppressor]:
    """Register a suppression snippet builder for ``service_id``."""

    def decorator(func: Suppressor) -> Suppressor:
        _SUPPRESSORS[service_id] = func
        return func

    return decorator


def get_suppressor(service_id: str) -> Suppressor | None:
    return _SUPPRESSORS.get(service_id)


def registered_services() -> set[str]:
    return set(_SUPPRESSORS)


def js_literal(value: object) -> str:
    """Encode ``value`` as a JavaScript literal safe to place inside <script>."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def _tracker_id(config: TrackerConfig, parameter: str) -> str:
    """Manual id first, then the service parameter, as in TrackerConfig.effective_id."""
    return config.id or config.parameters.get(parameter, "")


@suppressor("google_analytics")
def _google_analytics(config: TrackerConfig) -> str:
    lines = []
    tracking_id = _tracker_id(config, "tracking_id")
    if tracking_id:
        lines.append(f"window[{js_literal('ga-disable-' + tracking_id)}] = true;")
    lines += [
        "window.dataLayer = window.dataLayer || [];",
        "var gtag = function(){ window.dataLayer.push(arguments); };",
        "gtag('consent', 'default', {'analytics_storage': 'denied', 'ad_storage': 'denied'});",
    ]
    return "\n".join(lines)


@suppressor("google_tag_manager")
def _google_tag_manager(config: TrackerConfig) -> str:
    return "\n".join(
        [
            "window.dataLayer = window.dataLayer || [];",
            "(function(){ window.dataLayer.push(arguments); })('consent', 'default', "
            "{'analytics_storage': 'denied', 'ad_storage': 'denied', "
            "'ad_user_data': 'denied', 'ad_personalization': 'denied'});",
            "window.dataLayer.push({'gtm.blocklist': "
            "['customScripts', 'html', 'nonGoogleScripts']});",
        ]
    )


@suppressor("facebook_pixel")
def _facebook_pixel(config: TrackerConfig) -> str:
    return "\n".join(
        [
            "window.fbq = function(){};",
            "window.fbq.loaded = true;",
            "window.fbq.queue = [];",
            "window._fbq = window.fbq;",
        ]
    )


@suppressor("microsoft_clarity")
def _microsoft_clarity(config: TrackerConfig) -> str:
    return "\n".join(
        [
            "window.clarity = window.clarity || function(){};",
            "window.clarity.q = [];",
            "window.clarity.q.push(['consent', false]);",
            "window.clarity.q.push(['disable', true]);",
        ]
    )


@suppressor("linkedin_insight")
def _linkedin_insight(config: TrackerConfig) -> str:
    return "\n".join(
        [
            "window._linkedin_partner_id = undefined;",
            "window._linkedin_data_partner_ids = [];",
            "window.lintrk = function(){};",
            "window.lintrk.q = [];",
        ]
    )


@suppressor("twitter_pixel")
def _twitter_pixel(config: TrackerConfig) -> str:
    return "window.twq = function(){};\nwindow.twq.exe = function(){};\nwindow.twq.queue = [];"


@suppressor("tiktok_pixel")
def _tiktok_pixel(config: TrackerConfig) -> str:
    # The loader assigns methods onto window.ttq; a frozen stub ignores them.
    return "\n".join(
        [
            "(function(){",
            "  var noop = function(){};",
            "  var stub = {};",
            "  ['load', 'page', 'track', 'identify', 'instances', 'debug', 'on', 'off', 'once',",
            "   'ready', 'alias', 'group', 'enableCookie', 'disableCookie', 'holdConsent',",
            "   'revokeConsent', 'grantConsent'].forEach(function(m){ stub[m] = noop; });",
            "  stub.methods = [];",
            "  window.TiktokAnalyticsObject = 'ttq';",
            "  window.ttq = Object.freeze(stub);",
            "})();",
        ]
    )


@suppressor("pinterest_tag")
def _pinterest_tag(config: TrackerConfig) -> str:
    return "\n".join(
        [
            "window.pintrk = function(){};",
            "window.pintrk.queue = [];",
            "window.pintrk.version = '3.0';",
        ]
    )


@suppressor("matomo")
def _matomo(config: TrackerConfig) -> str:
    return "window._paq = window._paq || [];\nwindow._paq.push(['optUserOut']);"


@suppressor("yandex_metrica")
def _yandex_metrica(config: TrackerConfig) -> str:
    lines = []
    counter_id = _tracker_id(config, "counter_id")
    if counter_id:
        lines.append(f"window[{js_literal('disableYaCounter' + counter_id)}] = true;")
    lines.append("window.ym = function(){};")
    return "\n".join(lines)
