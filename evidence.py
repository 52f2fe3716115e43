"""
Evidence channels for page discovery.

The viewer scatters page markers (page number + content hash) across several
places: live <img> elements, not-yet-attached image URLs in the markup,
inline script payloads, an embedded initial-state object, and CSS
backgrounds. Each channel here is a pure function from a Snapshot to an
Evidence record, so the harvester can run any subset of them on every pass
and every channel can be tested against a plain HTML string.
"""

import json
import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from config import IMAGE_HOST, SITE_BASE_URL
from models import Evidence, PageMarker

_HOST = re.escape(IMAGE_HOST)
_SITE_HOST = urlsplit(SITE_BASE_URL).netloc.lower()

# "/images/12-3fa9c0.png" on any host, relative or absolute
IMAGE_PATH_RE = re.compile(r"/images/(\d+)-([a-f0-9]+)\.(?:png|jpe?g|webp)", re.IGNORECASE)

# Full image URL on the asset host; group 1 is the asset id
IMAGE_URL_RE = re.compile(
    rf"(?:https?:)?//{_HOST}/([^/\s\"'\\]+)/images/(\d+)-([a-f0-9]+)\.(?:png|jpe?g|webp)",
    re.IGNORECASE,
)

ASSET_RE = re.compile(rf"{_HOST}/([^/\s\"'\\?#)]+)")

CSS_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)

# "12": {"width": 900, "hash": "3fa9c0"}
KEYED_HASH_RE = re.compile(r'"(\d+)"\s*:\s*\{[^{}]*?"hash"\s*:\s*"([a-f0-9]+)"', re.IGNORECASE)

# {"page": 12, ..., "hash": "3fa9c0"} and the reverse key order
PAGE_THEN_HASH_RE = re.compile(
    r'"page(?:_?num(?:ber)?)?"\s*:\s*"?(\d+)"?[^{}]*?"(?:page_?)?hash"\s*:\s*"([a-f0-9]+)"',
    re.IGNORECASE,
)
HASH_THEN_PAGE_RE = re.compile(
    r'"(?:page_?)?hash"\s*:\s*"([a-f0-9]+)"[^{}]*?"page(?:_?num(?:ber)?)?"\s*:\s*"?(\d+)"?',
    re.IGNORECASE,
)

PAGE_COUNT_TEXT_RE = re.compile(r"(\d+)\s*(?:pages?|slides?)\b", re.IGNORECASE)
PAGE_COUNT_FIELD_RE = re.compile(
    r'"(?:total_pages|totalPages|page_count|pageCount|num_pages|numPages)"\s*:\s*"?(\d+)'
)

PAGE_KEYS = ("page", "page_number", "pageNumber", "page_num", "pageNum", "number")
HASH_KEYS = ("hash", "page_hash", "pageHash")
TOTAL_KEYS = ("total_pages", "totalPages", "page_count", "pageCount", "num_pages", "numPages")
HEX_RE = re.compile(r"^[a-f0-9]+$", re.IGNORECASE)
MAX_STATE_DEPTH = 40


@dataclass
class Snapshot:
    """Everything one pass could read from the rendered document."""

    html: str = ""
    text: str = ""
    title: str = ""
    url: str = ""
    image_sources: list[str] = field(default_factory=list)
    background_styles: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    state_payloads: list = field(default_factory=list)

    @classmethod
    def from_markup(
        cls,
        html: str,
        text: str = "",
        title: str = "",
        url: str = "",
        live_images=(),
        live_backgrounds=(),
        initial_state=None,
    ) -> "Snapshot":
        """Parse serialized markup into the fields every channel reads."""
        soup = BeautifulSoup(html or "", "html.parser")

        images = list(live_images)
        for img in soup.find_all("img"):
            for attr in ("src", "data-src", "data-original"):
                value = img.get(attr)
                if value:
                    images.append(value)
            srcset = img.get("srcset")
            if srcset:
                images.extend(part.strip().split(" ")[0] for part in srcset.split(",") if part.strip())

        backgrounds = list(live_backgrounds)
        backgrounds.extend(el["style"] for el in soup.find_all(style=True))
        backgrounds.extend(tag.string or "" for tag in soup.find_all("style"))

        scripts = [tag.string or "" for tag in soup.find_all("script")]

        payloads = [] if initial_state is None else [initial_state]
        for tag in soup.find_all("script", type="application/json"):
            try:
                payloads.append(json.loads(tag.string or ""))
            except ValueError:
                continue

        if not text:
            text = soup.get_text(" ", strip=True)
        if not title and soup.title:
            title = soup.title.get_text(strip=True)

        return cls(
            html=html or "",
            text=text,
            title=title,
            url=url,
            image_sources=images,
            background_styles=backgrounds,
            scripts=scripts,
            state_payloads=payloads,
        )


def _marker(page, hash_value, asset=None) -> PageMarker | None:
    try:
        number = int(page)
    except (TypeError, ValueError):
        return None
    if number < 1 or not hash_value:
        return None
    return PageMarker(page=number, hash=hash_value, asset=asset)


def _scan_urls(channel: str, urls) -> Evidence:
    """
    Markers from image URLs. Relative paths and the site's own host are read
    without an asset; any other host must be the image host, whose path names
    the asset each marker belongs to.
    """
    found = Evidence(channel)
    for url in urls:
        url = url.split("?")[0]
        match = IMAGE_PATH_RE.search(url)
        if not match:
            continue
        host = urlsplit(url).netloc.lower()
        asset = None
        if host == IMAGE_HOST.lower():
            full = IMAGE_URL_RE.search(url)
            if not full:
                continue
            asset = full.group(1)
        elif host and host != _SITE_HOST:
            continue
        marker = _marker(match.group(1), match.group(2), asset)
        if marker:
            found.markers.append(marker)
        if found.asset_id is None and asset:
            found.asset_id = asset
    return found


# --- Channels ---


def image_elements(snapshot: Snapshot) -> Evidence:
    """Image elements whose source is a page image."""
    return _scan_urls("image_elements", snapshot.image_sources)


def markup_urls(snapshot: Snapshot) -> Evidence:
    """Page-image URLs sitting in the markup, queued for lazy load but not attached yet."""
    found = Evidence("markup_urls")
    html = snapshot.html.replace("\\/", "/")
    for match in IMAGE_URL_RE.finditer(html):
        if found.asset_id is None:
            found.asset_id = match.group(1)
        marker = _marker(match.group(2), match.group(3), match.group(1))
        if marker:
            found.markers.append(marker)
    return found


def script_payloads(snapshot: Snapshot) -> Evidence:
    """
    Page/hash pairs in inline scripts. Handles numeric-keyed page maps,
    explicit page/hash key pairs in either order, and the same shapes
    escaped inside serialized JSON strings.
    """
    found = Evidence("script_payloads")
    for script in snapshot.scripts:
        if "hash" not in script.lower():
            continue
        content = script.replace('\\"', '"')
        for match in KEYED_HASH_RE.finditer(content):
            marker = _marker(match.group(1), match.group(2))
            if marker:
                found.markers.append(marker)
        for match in PAGE_THEN_HASH_RE.finditer(content):
            marker = _marker(match.group(1), match.group(2))
            if marker:
                found.markers.append(marker)
        for match in HASH_THEN_PAGE_RE.finditer(content):
            marker = _marker(match.group(2), match.group(1))
            if marker:
                found.markers.append(marker)
    return found


def _page_number(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _hash_of(node: dict) -> str | None:
    for key in HASH_KEYS:
        value = node.get(key)
        if isinstance(value, str) and HEX_RE.match(value):
            return value
    return None


def _walk_state(node, found: Evidence, depth: int = 0) -> None:
    if depth > MAX_STATE_DEPTH:
        return
    if isinstance(node, dict):
        hash_value = _hash_of(node)
        if hash_value:
            for key in PAGE_KEYS:
                number = _page_number(node.get(key))
                if number is not None:
                    marker = _marker(number, hash_value)
                    if marker:
                        found.markers.append(marker)
                    break
        if found.total_pages is None:
            for key in TOTAL_KEYS:
                total = _page_number(node.get(key))
                if total:
                    found.total_pages = total
                    break
        for key, value in node.items():
            if isinstance(value, dict) and isinstance(key, str) and key.isdigit():
                child_hash = _hash_of(value)
                if child_hash:
                    marker = _marker(key, child_hash)
                    if marker:
                        found.markers.append(marker)
            _walk_state(value, found, depth + 1)
    elif isinstance(node, list):
        for item in node:
            _walk_state(item, found, depth + 1)


def initial_state(snapshot: Snapshot) -> Evidence:
    """Recursive search of structured state payloads for page-like objects."""
    found = Evidence("initial_state")
    for payload in snapshot.state_payloads:
        _walk_state(payload, found)
        if found.asset_id is None:
            match = ASSET_RE.search(json.dumps(payload).replace("\\/", "/"))
            if match:
                found.asset_id = match.group(1)
    return found


def css_backgrounds(snapshot: Snapshot) -> Evidence:
    """background-image declarations pointing at page images."""
    urls = []
    for style in snapshot.background_styles:
        urls.extend(match.group(1) for match in CSS_URL_RE.finditer(style))
    return _scan_urls("css_backgrounds", urls)


def asset_identifier(snapshot: Snapshot) -> Evidence:
    found = Evidence("asset_identifier")
    match = ASSET_RE.search(snapshot.html.replace("\\/", "/"))
    if match:
        found.asset_id = match.group(1)
    return found


def page_total(snapshot: Snapshot) -> Evidence:
    """
    Approximate total-page signal: "N pages" / "N slides" in visible text,
    then structured count fields in the markup, then the phrase in the markup.
    """
    found = Evidence("page_total")
    for pattern, source in (
        (PAGE_COUNT_TEXT_RE, snapshot.text),
        (PAGE_COUNT_FIELD_RE, snapshot.html),
        (PAGE_COUNT_TEXT_RE, snapshot.html),
    ):
        for match in pattern.finditer(source or ""):
            total = int(match.group(1))
            if total > 0:
                found.total_pages = total
                return found
    return found


FULL_PASS = (
    image_elements,
    markup_urls,
    script_payloads,
    initial_state,
    css_backgrounds,
    asset_identifier,
    page_total,
)

# Cheap per-scroll pass over a live DOM query
DOM_PASS = (image_elements, css_backgrounds)


def collect(snapshot: Snapshot, extractors=FULL_PASS) -> list[Evidence]:
    """Run each extractor over the snapshot."""
    return [extract(snapshot) for extract in extractors]
