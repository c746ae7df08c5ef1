"""Tests for the scanners' default HTTP client."""

import httpx
import pytest

from notrack.core.catalog import get_supported_trackers
from notrack.core.config import DEFAULT_USER_AGENT
from notrack.scanners import body, headers
from notrack.scanners.session import build_client


def _recording_client(seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["user-agent"])
        return httpx.Response(200, html="<html></html>")

    return lambda: build_client(transport=httpx.MockTransport(handler))


def test_build_client_defaults():
    client = build_client()
    assert client.headers["User-Agent"] == DEFAULT_USER_AGENT
    assert client.follow_redirects


def test_build_client_custom_user_agent():
    client = build_client("Mozilla/5.0 (scan)")
    assert client.headers["User-Agent"] == "Mozilla/5.0 (scan)"


@pytest.mark.asyncio
async def test_scan_headers_without_client_sends_user_agent(monkeypatch):
    seen = []
    monkeypatch.setattr(headers, "build_client", _recording_client(seen))
    assert await headers.scan_headers("http://site.test/", get_supported_trackers()) == []
    assert seen == [DEFAULT_USER_AGENT]


@pytest.mark.asyncio
async def test_scan_body_without_client_sends_user_agent(monkeypatch):
    seen = []
    monkeypatch.setattr(body, "build_client", _recording_client(seen))
    assert await body.scan_body("http://site.test/", get_supported_trackers()) == []
    assert seen == [DEFAULT_USER_AGENT]
