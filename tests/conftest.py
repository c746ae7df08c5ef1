"""Shared test fixtures."""

import httpx
import pytest

from notrack.core.config import Settings
from notrack.core.store import MemoryStore

SITE_URL = "http://site.test/"

GA_SNIPPET = """<?php // header.php ?>
<script async src="https://www.googletagmanager.com/gtag/js?id=G-ABC1234"></script>
<script>
  window.dataLayer = window.dataLayer || [];
  function gtag(){dataLayer.push(arguments);}
  gtag('js', new Date());
  gtag('config', 'G-ABC1234');
</script>
"""

HOTJAR_SNIPPET = """(function(h,o,t,j,a,r){
    h.hj=h.hj||function(){(h.hj.q=h.hj.q||[]).push(arguments)};
    h._hjSettings={hjid:3141592,hjsv:6};
})(window,document,'https://static.hotjar.com/c/hotjar-','.js?sv=');
"""

FB_SNIPPET = "fbq('init', '123456789012345'); fbq('track', 'PageView');"

HOME_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta name="google-site-verification" content="abc123">
<script async src="https://www.googletagmanager.com/gtag/js?id=G-ABC1234"></script>
<script>
  window.dataLayer = window.dataLayer || [];
  function gtag(){dataLayer.push(arguments);}
  gtag('config', 'G-ABC1234');
</script>
<script>
!function(f,b,e,v,n,t,s){n=f.fbq=function(){};t=b.createElement(e);t.async=!0;
t.src=v;s=b.getElementsByTagName(e)[0];s.parentNode.insertBefore(t,s)}(window,
document,'script','https://connect.facebook.net/en_US/fbevents.js');
fbq('init', '123456789012345');
</script>
</head>
<body>
<img height="1" width="1" src="https://www.facebook.com/tr?id=123456789012345"/>
<iframe src="https://www.googletagmanager.com/ns.html?id=GTM-ABCD12" height="0" width="0"></iframe>
<img src="https://cdn.site.test/logo.png" width="200" height="80">
</body>
</html>
"""


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def theme_dir(tmp_path):
    """A theme with GA and Hotjar snippets plus a vendored FB snippet that must be skipped."""
    theme = tmp_path / "theme"
    (theme / "js").mkdir(parents=True)
    (theme / "node_modules" / "pixel").mkdir(parents=True)
    (theme / "header.php").write_text(GA_SNIPPET)
    (theme / "js" / "hotjar.js").write_text(HOTJAR_SNIPPET)
    (theme / "node_modules" / "pixel" / "index.js").write_text(FB_SNIPPET)
    (theme / "style.css").write_text("/* google-analytics.com */")
    return theme


@pytest.fixture
def settings(tmp_path, theme_dir):
    return Settings(
        site_url=SITE_URL,
        theme_dir=theme_dir,
        state_path=tmp_path / "state.db",
    )


@pytest.fixture
def home_page():
    return HOME_PAGE


@pytest.fixture
def make_transport():
    """Factory for a MockTransport serving the home page for GET and ``headers`` for HEAD."""

    def factory(headers=None, html=HOME_PAGE, status_code=200, calls=None):
        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request.method)
            if request.method == "HEAD":
                return httpx.Response(status_code, headers=headers or {})
            return httpx.Response(status_code, html=html)

        return httpx.MockTransport(handler)

    return factory


@pytest.fixture
def transport(make_transport):
    return make_transport(headers={"X-FB-Debug": "Zm9vYmFy=="})
