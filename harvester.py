"""
Scroll-and-rescan harvest loop.

The viewer only keeps nearby pages in the DOM, so one snapshot never holds
the whole document. The loop scrolls, pauses, re-reads the live DOM and
merges whatever new page markers turned up, until it has as many pages as
the document claims to have or it runs out of attempts. There is no
"loading complete" event to wait for.
"""

import logging
import time
from dataclasses import dataclass, field

from playwright.sync_api import Error as PlaywrightError

from config import (
    HARVEST_MAX_SECONDS,
    MAX_SCROLLS,
    SCROLL_PAUSE_MS,
    SCROLL_STEP_PX,
    STAGNATION_LIMIT,
)
from evidence import DOM_PASS, FULL_PASS, Snapshot, collect
from models import Evidence, PageMarker

logger = logging.getLogger(__name__)

# Visible text, any known state global, and the live image/background sources
PAGE_STATE_JS = """() => {
    const names = ['__INITIAL_STATE__', '__PRELOADED_STATE__', '__NEXT_DATA__', 'docManagerData'];
    let state = null;
    for (const name of names) {
        if (window[name] && typeof window[name] === 'object') {
            try { state = JSON.parse(JSON.stringify(window[name])); } catch (e) { state = null; }
            if (state) break;
        }
    }
    return {
        text: document.body ? document.body.innerText : '',
        state: state,
        images: Array.from(document.images).map(img => img.currentSrc || img.src || ''),
        backgrounds: Array.from(document.querySelectorAll('[style*="background"]'))
            .map(el => el.getAttribute('style') || ''),
    };
}"""

DOM_SNAPSHOT_JS = """() => ({
    images: Array.from(document.images).map(img => img.currentSrc || img.src || ''),
    backgrounds: Array.from(document.querySelectorAll('[style*="background"]'))
        .map(el => el.getAttribute('style') || ''),
})"""

# The document may scroll inside its own container rather than the window
SCROLL_BY_JS = """(step) => {
    window.scrollTo(0, window.scrollY + step);
    document.querySelectorAll('.document_scroller, [class*="DocumentScroller"], [class*="document_container"]')
        .forEach(el => { el.scrollTop += step; });
}"""

SCROLL_TO_TOP_JS = """() => {
    window.scrollTo(0, 0);
    document.querySelectorAll('.document_scroller, [class*="DocumentScroller"], [class*="document_container"]')
        .forEach(el => { el.scrollTop = 0; });
}"""

SCROLL_TO_BOTTOM_JS = """() => {
    window.scrollTo(0, document.documentElement.scrollHeight);
    document.querySelectorAll('.document_scroller, [class*="DocumentScroller"], [class*="document_container"]')
        .forEach(el => { el.scrollTop = el.scrollHeight; });
}"""

SCROLL_TO_JS = """(y) => {
    window.scrollTo(0, y);
    document.querySelectorAll('.document_scroller, [class*="DocumentScroller"], [class*="document_container"]')
        .forEach(el => { el.scrollTop = y; });
}"""

SCROLL_POSITION_JS = """() => {
    let y = window.scrollY;
    document.querySelectorAll('.document_scroller, [class*="DocumentScroller"], [class*="document_container"]')
        .forEach(el => { y = Math.max(y, el.scrollTop); });
    return Math.round(y);
}"""


@dataclass
class HarvestState:
    """Loop state threaded through every harvest iteration."""

    pages: dict[int, PageMarker] = field(default_factory=dict)
    asset_id: str | None = None
    total_pages: int | None = None
    attempts: int = 0
    stagnant: int = 0
    recoveries: int = 0
    resume_position: int = 0
    asset_confirmed: bool = False
    foreign: int = 0
    channel_hits: dict[str, int] = field(default_factory=dict)

    def target_reached(self) -> bool:
        return self.total_pages is not None and len(self.pages) >= self.total_pages

    def absorb(self, evidence: list[Evidence]) -> int:
        """
        Merge evidence into the accumulator and return how many new pages it added.

        First writer wins per page number. The asset id comes from the first
        marker whose URL names one; a bare asset id found elsewhere in the
        markup only holds until then. Markers read under any other asset are
        dropped, since their images would not resolve under ours. The
        total-page signal keeps the largest value reported so far.
        """
        added = 0
        for found in evidence:
            if self.asset_id is None and found.asset_id:
                self.asset_id = found.asset_id
            if found.total_pages and (self.total_pages is None or found.total_pages > self.total_pages):
                self.total_pages = found.total_pages
            for marker in found.markers:
                if marker.page < 1 or not marker.hash:
                    continue
                if marker.asset:
                    if not self.asset_confirmed:
                        if self.asset_id and self.asset_id != marker.asset:
                            logger.debug("Asset %s replaced by %s from a page image", self.asset_id, marker.asset)
                        self.asset_id = marker.asset
                        self.asset_confirmed = True
                    elif marker.asset != self.asset_id:
                        self.foreign += 1
                        continue
                if marker.page in self.pages:
                    continue
                self.pages[marker.page] = marker
                self.channel_hits[found.channel] = self.channel_hits.get(found.channel, 0) + 1
                added += 1
        return added

    def debug(self) -> dict:
        return {
            "scroll_attempts": self.attempts,
            "recoveries": self.recoveries,
            "target": self.total_pages,
            "foreign_markers": self.foreign,
            "channels": dict(self.channel_hits),
        }


def take_snapshot(page) -> Snapshot:
    """Full snapshot: serialized markup plus what only the live page can report."""
    extras = page.evaluate(PAGE_STATE_JS) or {}
    return Snapshot.from_markup(
        page.content(),
        text=extras.get("text") or "",
        title=page.title(),
        url=page.url,
        live_images=extras.get("images") or (),
        live_backgrounds=extras.get("backgrounds") or (),
        initial_state=extras.get("state"),
    )


def take_dom_snapshot(page) -> Snapshot:
    data = page.evaluate(DOM_SNAPSHOT_JS) or {}
    return Snapshot(
        image_sources=list(data.get("images") or []),
        background_styles=list(data.get("backgrounds") or []),
    )


def _recover(page, state: HarvestState, pause_ms: int) -> int:
    """
    Jump to the top and then to the bottom to shake a stuck lazy-loader loose,
    then go back to where scrolling last found something new so the pages
    between there and the bottom still get scrolled past.
    """
    page.evaluate(SCROLL_TO_TOP_JS)
    page.wait_for_timeout(pause_ms)
    page.evaluate(SCROLL_TO_BOTTOM_JS)
    page.wait_for_timeout(pause_ms)
    added = state.absorb(collect(take_snapshot(page), FULL_PASS))
    page.evaluate(SCROLL_TO_JS, state.resume_position)
    page.wait_for_timeout(pause_ms)
    state.recoveries += 1
    state.stagnant = 0
    logger.info("Stagnation recovery #%d added %d pages", state.recoveries, added)
    return added


def harvest(
    page,
    max_scrolls: int = MAX_SCROLLS,
    step: int = SCROLL_STEP_PX,
    pause_ms: int = SCROLL_PAUSE_MS,
    stagnation_limit: int = STAGNATION_LIMIT,
    max_seconds: float = HARVEST_MAX_SECONDS,
    clock=time.monotonic,
) -> HarvestState:
    """
    Collect every page marker reachable from the current page.

    Never raises on browser failures: a Playwright error ends the loop and
    whatever was gathered up to that point is returned.
    """
    state = HarvestState()
    try:
        state.absorb(collect(take_snapshot(page), FULL_PASS))
    except PlaywrightError as e:
        logger.warning("Initial evidence pass failed: %s", e)
        return state

    logger.info(
        "Initial pass: asset=%s total=%s pages=%d",
        state.asset_id, state.total_pages, len(state.pages),
    )

    deadline = clock() + max_seconds
    try:
        while state.attempts < max_scrolls and not state.target_reached():
            if clock() >= deadline:
                logger.warning("Harvest hit the %.0fs ceiling after %d scrolls", max_seconds, state.attempts)
                break

            page.evaluate(SCROLL_BY_JS, step)
            page.wait_for_timeout(pause_ms)
            added = state.absorb(collect(take_dom_snapshot(page), DOM_PASS))
            state.attempts += 1
            state.stagnant = 0 if added else state.stagnant + 1
            if added:
                state.resume_position = page.evaluate(SCROLL_POSITION_JS) or 0

            if state.stagnant >= stagnation_limit and not state.target_reached():
                _recover(page, state, pause_ms)

            if state.attempts % 20 == 0:
                logger.info("Scroll %d, found %d pages", state.attempts, len(state.pages))
    except PlaywrightError as e:
        logger.warning("Harvest stopped after %d scrolls: %s", state.attempts, e)

    logger.info("Harvest finished: %d pages after %d scrolls", len(state.pages), state.attempts)
    return state
