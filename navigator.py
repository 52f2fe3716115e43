"""
Browser session and navigation for the extractor.

Opens one isolated Chromium page per extraction, walks the candidate URL
chain (embed view, full document view, then any embedded viewer the page
points at) and leaves the page positioned where page markers can be read.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from config import (
    AFFORDANCE_CLICK_TIMEOUT_MS,
    BROWSER_ARGS,
    HEADLESS,
    NAV_TIMEOUT_MS,
    SETTLE_DELAY_MS,
    SITE_BASE_URL,
    USER_AGENT,
    VIEWPORT,
)
from errors import NavigationError, RenderingEnvironmentError

logger = logging.getLogger(__name__)

# Runs before any page script
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = { runtime: {} };
"""

AFFORDANCE_SELECTORS = [
    'button:has-text("Read for free")',
    'a:has-text("Read for free")',
    'button[aria-label*="fullscreen" i]',
    'button:has-text("Fullscreen")',
]

BLOCKED_URL_RE = re.compile(r"/(?:login|signin|sign_in|register|subscribe|paywall)\b", re.IGNORECASE)
BLOCKED_TITLE_RE = re.compile(r"\b(?:log ?in|sign ?in|sign ?up|subscribe)\b", re.IGNORECASE)
VIEWER_SRC_RE = re.compile(r"/embeds?/|viewer", re.IGNORECASE)


@dataclass
class NavigationOutcome:
    url: str
    tried: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    blocked: bool = False
    via_viewer: bool = False

    def debug(self) -> dict:
        return {
            "landed_url": self.url,
            "tried": list(self.tried),
            "navigation_errors": list(self.errors),
            "blocked": self.blocked,
            "via_viewer": self.via_viewer,
        }


@contextmanager
def browser_session(headless: bool = HEADLESS):
    """
    Yield a fresh Playwright page with the anti-detection setup applied.
    The browser is closed on every exit path.
    """
    with sync_playwright() as p:
        try:
            browser = p.chromium.launch(headless=headless, args=BROWSER_ARGS)
        except PlaywrightError as e:
            raise RenderingEnvironmentError(f"Could not start browser: {e}") from e
        try:
            try:
                context = browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT, locale="en-US")
                context.add_init_script(STEALTH_JS)
                page = context.new_page()
            except PlaywrightError as e:
                raise RenderingEnvironmentError(f"Could not open a browser page: {e}") from e
            yield page
        finally:
            browser.close()


def candidate_urls(doc_id: str) -> list[str]:
    """Lightweight embed view first, then the full document page."""
    return [
        f"{SITE_BASE_URL}/embeds/{doc_id}/content",
        f"{SITE_BASE_URL}/document/{doc_id}",
    ]


def looks_blocked(url: str, title: str, requested: str | None = None) -> bool:
    """
    True if the page we landed on is a login, signup or paywall page instead of a viewer.

    Documents can be titled "Login Guide" or "Sign Up Sheet", so when the
    requested URL is known the title only counts once the path has moved
    away from it.
    """
    if BLOCKED_URL_RE.search(url or ""):
        return True
    if requested and urlsplit(url or "").path.rstrip("/") == urlsplit(requested).path.rstrip("/"):
        return False
    return bool(BLOCKED_TITLE_RE.search(title or ""))


def find_viewer_frame(html: str, base_url: str) -> str | None:
    """Absolute URL of the first iframe that looks like an embedded document viewer."""
    soup = BeautifulSoup(html or "", "html.parser")
    for frame in soup.find_all("iframe"):
        src = frame.get("src") or frame.get("data-src")
        if src and VIEWER_SRC_RE.search(src):
            return urljoin(base_url, src)
    return None


def _goto(page, url: str, timeout_ms: int, errors: list[str]) -> bool:
    logger.info("Going to: %s", url)
    try:
        page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as e:
        logger.warning("Failed to load %s: %s", url, e)
        errors.append(f"{url}: {e}")
        return False
    return True


def navigate(
    page,
    doc_id: str,
    timeout_ms: int = NAV_TIMEOUT_MS,
    settle_ms: int = SETTLE_DELAY_MS,
) -> NavigationOutcome:
    """
    Load the first candidate that answers. A timeout or network error moves
    on to the next candidate. When a page resolves to a login or paywall,
    an embedded viewer iframe is followed if the page has one.

    Raises NavigationError only if no candidate loaded at all. A blocked page
    is kept as a last resort since it can still carry page markers.
    """
    outcome = NavigationOutcome(url="")
    loaded = False

    for url in candidate_urls(doc_id):
        outcome.tried.append(url)
        if not _goto(page, url, timeout_ms, outcome.errors):
            continue
        loaded = True
        # no reliable "content ready" signal, so give hydration a fixed window
        page.wait_for_timeout(settle_ms)

        if not looks_blocked(page.url, page.title(), requested=url):
            outcome.url = page.url
            return outcome

        logger.info("%s looks like a login or paywall page", page.url)
        viewer = find_viewer_frame(page.content(), page.url)
        if viewer and viewer not in outcome.tried:
            outcome.tried.append(viewer)
            if _goto(page, viewer, timeout_ms, outcome.errors):
                page.wait_for_timeout(settle_ms)
                outcome.url = page.url
                outcome.via_viewer = True
                return outcome

    if not loaded:
        raise NavigationError(f"Failed to load page: {'; '.join(outcome.errors)}", tried=outcome.tried)

    outcome.url = page.url
    outcome.blocked = True
    return outcome


def press_affordances(page) -> list[str]:
    """Best-effort clicks on "read for free" / fullscreen controls. Misses are ignored."""
    clicked = []
    for selector in AFFORDANCE_SELECTORS:
        try:
            target = page.locator(selector).first
            if not target.count():
                continue
            target.click(timeout=AFFORDANCE_CLICK_TIMEOUT_MS)
            clicked.append(selector)
        except PlaywrightError as e:
            logger.debug("Could not click %s: %s", selector, e)
    return clicked
