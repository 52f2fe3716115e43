"""
Turn a finished harvest into the ExtractionResult returned to callers.
"""

import re

from config import IMAGE_HOST, SITE_NAME
from harvester import HarvestState
from models import ExtractionResult, PageEntry

DEFAULT_TITLE = "Document"
_TITLE_SUFFIX_RE = re.compile(rf"\s*\|\s*{re.escape(SITE_NAME)}\s*$", re.IGNORECASE)


def build_image_url(asset_id: str | None, page: int, hash_value: str) -> str | None:
    """Image URL for one page, or None when the asset namespace is unknown."""
    if not asset_id:
        return None
    return f"https://{IMAGE_HOST}/{asset_id}/images/{page}-{hash_value}.png"


def clean_title(raw: str | None) -> str:
    """Strip the trailing " | Scribd" and whitespace; fall back to a placeholder."""
    title = _TITLE_SUFFIX_RE.sub("", raw or "").strip()
    return title or DEFAULT_TITLE


def _page_entries(state: HarvestState | None) -> list[PageEntry]:
    if state is None:
        return []
    return [
        PageEntry(
            page=marker.page,
            hash=marker.hash,
            url=build_image_url(state.asset_id, marker.page, marker.hash),
        )
        for _, marker in sorted(state.pages.items())
    ]


def assemble(
    doc_id: str,
    state: HarvestState,
    title: str | None,
    debug: dict | None = None,
) -> ExtractionResult:
    """
    Successful result. Zero pages is still a success: the extraction ran,
    it just found nothing.
    """
    pages = _page_entries(state)
    return ExtractionResult(
        success=True,
        doc_id=doc_id,
        asset_id=state.asset_id,
        title=clean_title(title),
        page_count=max(state.total_pages or 0, len(pages)),
        pages=pages,
        debug=debug,
    )


def failure_result(
    doc_id: str,
    error: str,
    state: HarvestState | None = None,
    title: str | None = None,
    debug: dict | None = None,
) -> ExtractionResult:
    """Failed result carrying whatever partial data was gathered before the failure."""
    pages = _page_entries(state)
    total = state.total_pages if state else None
    return ExtractionResult(
        success=False,
        doc_id=doc_id,
        asset_id=state.asset_id if state else None,
        title=clean_title(title) if title else None,
        page_count=max(total or 0, len(pages)),
        pages=pages,
        error=error,
        debug=debug,
    )
