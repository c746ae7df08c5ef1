"""Tests for shared evidence matching helpers."""

from notrack.core.catalog import get_tracker
from notrack.scanners.matching import (
    extract_id,
    find_keyword,
    matches_domain,
    snippet,
)


def test_find_keyword_on_lowered_text():
    ga = get_tracker("google_analytics")
    text = "<script src='https://www.Google-Analytics.com/analytics.js'></script>"
    assert find_keyword(ga, text.lower()) == text.lower().index("google-analytics.com")
    assert find_keyword(ga, "nothing here") is None


def test_extract_id_prefers_init_pattern():
    ga = get_tracker("google_analytics")
    text = "// legacy UA-11111-1\ngtag('config', 'G-NEW12345');"
    assert extract_id(ga, text) == "G-NEW12345"


def test_extract_id_falls_back_to_id_pattern():
    ga = get_tracker("google_analytics")
    assert extract_id(ga, "var property = 'UA-123456-7';") == "UA-123456-7"
    assert extract_id(ga, "no ids") is None


def test_extract_id_group_less_pattern():
    linkedin = get_tracker("linkedin_insight")
    assert extract_id(linkedin, "partner 1234567") == "1234567"


def test_matches_domain_case_insensitive():
    hubspot = get_tracker("hubspot")
    assert matches_domain(hubspot, "//JS.HS-Scripts.com/4242.js") == "js.hs-scripts.com"
    assert matches_domain(hubspot, "https://example.com/app.js") is None


def test_snippet_window():
    text = "x" * 30 + "fbq('init', '123');" + "y" * 30
    pos = text.index("fbq")
    result = snippet(text, pos)
    assert len(result) == 40
    assert result.startswith("x" * 20 + "fbq")


def test_snippet_collapses_whitespace():
    assert snippet("a\n\n   b", 0) == "a b"


def test_extract_universal_analytics_id():
    ga = get_tracker("google_analytics")
    assert extract_id(ga, "ga('send', 'pageview'); // UA-123456-1") == "UA-123456-1"
