"""
Data types shared by the harvester, the assembler and the HTTP layer.

PageMarker and Evidence are internal values passed between pipeline stages;
the pydantic models are what callers receive as JSON.
"""

from dataclasses import dataclass, field

from pydantic import BaseModel


@dataclass(frozen=True)
class PageMarker:
    """
    One page's located identity: its number and the content hash of its image.

    `asset` is the namespace the marker was read under, when its source URL
    named one. It does not take part in equality.
    """

    page: int
    hash: str
    asset: str | None = field(default=None, compare=False)


@dataclass
class Evidence:
    """What a single evidence channel found in one snapshot."""

    channel: str
    markers: list[PageMarker] = field(default_factory=list)
    asset_id: str | None = None
    total_pages: int | None = None


# --- Response models ---


class PageEntry(BaseModel):
    page: int
    hash: str
    url: str | None = None


class ExtractionResult(BaseModel):
    success: bool
    doc_id: str
    asset_id: str | None = None
    title: str | None = None
    page_count: int = 0
    pages: list[PageEntry] = []
    error: str | None = None
    debug: dict | None = None
