"""
Extract page images from a Scribd document.

Opens a headless browser on the document, harvests every page marker the
viewer exposes, and prints the assembled page list as JSON.

Usage:
    python scraper.py https://www.scribd.com/document/123456/Some-Title
    python scraper.py URL [URL ...] --save

Each extraction runs in its own browser session; nothing is shared between
documents.
"""

import logging
import re

import click

from assembler import assemble, failure_result
from cache_client import save_to_cache
from config import setup_logging
from errors import InvalidInputError, NavigationError, RenderingEnvironmentError
from harvester import harvest
from models import ExtractionResult
from navigator import browser_session, navigate, press_affordances

logger = logging.getLogger(__name__)

DOC_ID_RE = re.compile(r"/(?:document|doc|embeds)/(\d+)", re.IGNORECASE)


def extract_doc_id(url) -> str | None:
    """Digits of a .../document/<id>, .../doc/<id> or .../embeds/<id> URL, else None."""
    if not isinstance(url, str):
        return None
    match = DOC_ID_RE.search(url)
    return match.group(1) if match else None


def parse_doc_id(url) -> str:
    """Like extract_doc_id, but raises InvalidInputError for anything that is not a document URL."""
    doc_id = extract_doc_id(url)
    if doc_id is None:
        raise InvalidInputError(f"Not a document URL: {url!r}")
    return doc_id


def _run(page, doc_id: str) -> ExtractionResult:
    debug = {}
    state = None
    title = None
    try:
        outcome = navigate(page, doc_id)
        debug.update(outcome.debug())
        debug["clicked"] = press_affordances(page)
        title = page.title()
        logger.info("Title: %s, landed on %s", title, outcome.url)

        state = harvest(page)
        debug.update(state.debug())
    except NavigationError as e:
        debug["tried"] = e.tried
        return failure_result(doc_id, str(e), debug=debug)
    except Exception as e:
        logger.exception("Extraction failed for %s", doc_id)
        return failure_result(doc_id, str(e), state=state, title=title, debug=debug)

    result = assemble(doc_id, state, title, debug=debug)
    logger.info(
        "Done: %s, asset=%s, %d pages found, page_count=%d",
        doc_id, result.asset_id, len(result.pages), result.page_count,
    )
    return result


def extract_pages(doc_id: str, session_factory=browser_session) -> ExtractionResult:
    """
    Main entry point for one extraction.

    Every failure is turned into a structured result except
    RenderingEnvironmentError, which means the browser never started and is
    left for the caller to report as a server error.
    """
    logger.info("Extracting doc: %s", doc_id)
    try:
        with session_factory() as page:
            return _run(page, doc_id)
    except RenderingEnvironmentError:
        raise
    except Exception as e:
        logger.exception("Browser session failed for %s", doc_id)
        return failure_result(doc_id, str(e))


@click.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--save", is_flag=True, help="Forward successful, non-empty results to the remote cache.")
def main(urls, save):
    """Extract page image URLs for one or more Scribd document URLs."""
    setup_logging()

    doc_ids = []
    for url in urls:
        try:
            doc_ids.append(parse_doc_id(url))
        except InvalidInputError as e:
            raise click.BadParameter(str(e), param_hint="URLS")

    for doc_id in doc_ids:
        result = extract_pages(doc_id)
        if save and result.success and result.pages:
            save_to_cache(result)
        click.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
