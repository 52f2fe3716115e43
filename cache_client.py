"""
Forward finished extractions to the remote cache service.

Saving is opportunistic: any failure is logged and reported as False, never
raised to the caller.
"""

import logging

import requests

from config import CACHE_BASE_URL, CACHE_TIMEOUT
from models import ExtractionResult

logger = logging.getLogger(__name__)


def save_to_cache(result: ExtractionResult) -> bool:
    """POST the result to {CACHE_BASE_URL}/api/cache. Returns True on a 2xx answer."""
    url = f"{CACHE_BASE_URL}/api/cache"
    try:
        response = requests.post(
            url,
            json=result.model_dump(mode="json", exclude={"debug"}),
            headers={"Content-Type": "application/json"},
            timeout=CACHE_TIMEOUT,
        )
    except requests.Timeout:
        logger.warning("Cache save for %s timed out", result.doc_id)
        return False
    except requests.RequestException as e:
        logger.warning("Cache save for %s failed: %s", result.doc_id, e)
        return False

    if not response.ok:
        logger.warning(
            "Cache rejected %s (%s): %s",
            result.doc_id, response.status_code, response.text[:200],
        )
        return False

    logger.info("Cached %s (%d pages)", result.doc_id, len(result.pages))
    return True
