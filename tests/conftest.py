"""
Shared fixtures for the extractor tests.

FakePage stands in for a Playwright page: it serves scripted HTML and DOM
snapshots, counts scrolls, and can be told to fail navigation for given URLs.
"""

import os
import sys
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import harvester  # noqa: E402

IMG = "https://html.scribdassets.com/{asset}/images/{page}-{hash}.png"


def img_tag(asset, page, hash_value):
    return f'<img class="absimg" src="{IMG.format(asset=asset, page=page, hash=hash_value)}">'


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    def count(self):
        return 1 if self.selector in self.page.clickable else 0

    def click(self, timeout=None):
        if self.selector in self.page.broken_clicks:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded clicking {self.selector}")
        self.page.clicked.append(self.selector)


class FakePage:
    """
    Minimal sync Playwright page.

    `stages` is a list of dicts, one per scroll position; stage N is what the
    page shows after N scrolls (the last stage repeats). Each stage may hold
    `html`, `text`, `state`, `images` and `backgrounds`.

    `position` follows the scroll scripts. With `scroll_height` set, a jump
    to the bottom lands there; otherwise the bottom jump leaves it alone.
    """

    def __init__(self, stages=None, title="Document | Scribd", fail_urls=(), redirects=None):
        self.stages = stages or [{}]
        self._title = title
        self.fail_urls = set(fail_urls)
        self.redirects = redirects or {}
        self.url = "about:blank"
        self.visited = []
        self.scrolls = 0
        self.position = 0
        self.scroll_height = None
        self.jumps = []
        self.restores = []
        self.waits = []
        self.clickable = set()
        self.broken_clicks = set()
        self.clicked = []
        self.titles = {}
        self.pages_html = {}
        self.raise_on_scroll = None
        self.closed = False

    @property
    def stage(self):
        return self.stages[min(self.scrolls, len(self.stages) - 1)]

    # --- navigation ---

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if url in self.fail_urls:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = self.redirects.get(url, url)

    def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def title(self):
        return self.titles.get(self.url, self._title)

    def content(self):
        if self.url in self.pages_html:
            return self.pages_html[self.url]
        return self.stage.get("html", "<html><body></body></html>")

    def locator(self, selector):
        return FakeLocator(self, selector)

    # --- scripts ---

    def live_images(self):
        return list(self.stage.get("images", []))

    def _move_to(self, y):
        self.position = max(0, y if self.scroll_height is None else min(y, self.scroll_height))

    def evaluate(self, script, arg=None):
        if script == harvester.PAGE_STATE_JS:
            stage = self.stage
            return {
                "text": stage.get("text", ""),
                "state": stage.get("state"),
                "images": self.live_images(),
                "backgrounds": list(stage.get("backgrounds", [])),
            }
        if script == harvester.DOM_SNAPSHOT_JS:
            return {
                "images": self.live_images(),
                "backgrounds": list(self.stage.get("backgrounds", [])),
            }
        if script == harvester.SCROLL_BY_JS:
            if self.raise_on_scroll is not None and self.scrolls >= self.raise_on_scroll:
                raise PlaywrightError("Target page, context or browser has been closed")
            self.scrolls += 1
            self._move_to(self.position + (arg or 0))
            return None
        if script == harvester.SCROLL_TO_TOP_JS:
            self.jumps.append(script)
            self.position = 0
            return None
        if script == harvester.SCROLL_TO_BOTTOM_JS:
            self.jumps.append(script)
            if self.scroll_height is not None:
                self.position = self.scroll_height
            return None
        if script == harvester.SCROLL_TO_JS:
            self.restores.append(arg)
            self._move_to(arg)
            return None
        if script == harvester.SCROLL_POSITION_JS:
            return self.position
        raise AssertionError(f"unexpected script: {script[:60]}")


def fake_session(page):
    """session_factory for extract_pages that hands out the given fake page."""

    @contextmanager
    def factory():
        try:
            yield page
        finally:
            page.closed = True

    return factory


@pytest.fixture
def three_page_viewer():
    """
    Viewer for doc 123456: pages 1-2 rendered on arrival, page 3 after one
    scroll, and the page says it has 3 pages.
    """
    first = (
        "<html><head><title>My Title | Scribd</title></head><body>"
        "<div class='meta'>3 pages</div>"
        + img_tag("abcd1234", 1, "aa11")
        + img_tag("abcd1234", 2, "bb22")
        + "</body></html>"
    )
    stages = [
        {
            "html": first,
            "text": "My Title 3 pages",
            "images": [IMG.format(asset="abcd1234", page=1, hash="aa11"),
                       IMG.format(asset="abcd1234", page=2, hash="bb22")],
        },
        {
            "images": [IMG.format(asset="abcd1234", page=2, hash="bb22"),
                       IMG.format(asset="abcd1234", page=3, hash="cc33")],
        },
    ]
    return FakePage(stages=stages, title="My Title | Scribd")


@pytest.fixture
def test_client():
    """FastAPI test client."""
    from main import app

    return TestClient(app)


@pytest.fixture
def script_payload_html():
    return """<html><body>
    <script>
      window.pageData = {"pages": {"1": {"width": 900, "hash": "0a1b"}, "2": {"hash": "0c2d"}}};
    </script>
    <script>
      docManager.addPage({"page": 3, "origin": "x", "hash": "3e3e"});
      docManager.addPage({"hash": "4f4f", "page_number": "4"});
    </script>
    <script>
      var blob = "{\\"page\\": 5, \\"hash\\": \\"5a5a\\"}";
    </script>
    </body></html>"""
