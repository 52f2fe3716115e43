"""
FastAPI backend for the Scribd Page Extractor.

Wraps the extraction pipeline in a small HTTP API: single extraction
(GET or POST), batch extraction, and a health check.

Usage:
    python main.py
    # Then GET http://localhost:3000/extract?url=https://www.scribd.com/document/123456
"""

import asyncio
import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cache_client import save_to_cache
from config import PORT, SERVICE_NAME, VERSION, setup_logging
from errors import InvalidInputError, RenderingEnvironmentError
from models import ExtractionResult
from scraper import extract_doc_id, extract_pages, parse_doc_id

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Scribd Page Extractor", version=VERSION)


# --- Request/Response Models ---


class ExtractRequest(BaseModel):
    url: str | None = None
    save: bool = False


class BatchRequest(BaseModel):
    urls: list[str]


class BatchItem(BaseModel):
    url: str
    success: bool
    pages: int = 0
    error: str | None = None


# --- Helpers ---


def _doc_id_or_400(url: str | None) -> str:
    if not url:
        raise HTTPException(status_code=400, detail="missing_url")
    try:
        return parse_doc_id(url)
    except InvalidInputError:
        raise HTTPException(status_code=400, detail="invalid_url")


async def _run_extraction(doc_id: str) -> ExtractionResult:
    """Run the blocking browser pipeline in a thread to keep the event loop free."""
    try:
        return await asyncio.to_thread(extract_pages, doc_id)
    except RenderingEnvironmentError as e:
        logger.error("Browser unavailable: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("Extraction crashed for %s", doc_id)
        raise HTTPException(status_code=500, detail=f"Extraction failed: {str(e)}")


async def _save_if_useful(result: ExtractionResult) -> bool:
    if not (result.success and result.pages):
        return False
    return await asyncio.to_thread(save_to_cache, result)


# --- Error handlers ---


@app.exception_handler(RequestValidationError)
async def extract_body_error(request: Request, exc: RequestValidationError):
    """A malformed /extract body is a bad url or a bad flag, reported as 400 like a bad query."""
    if request.url.path != "/extract":
        return await request_validation_exception_handler(request, exc)
    fields = {str(part) for error in exc.errors() for part in error.get("loc", ())}
    detail = "invalid_url" if "url" in fields else "invalid_request"
    logger.info("Rejected /extract body: %s", detail)
    return JSONResponse(status_code=400, content={"detail": detail})


# --- API Endpoints ---


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": VERSION,
        "engine": "Python + Playwright",
    }


@app.get("/extract", response_model=ExtractionResult)
async def extract_get(url: str | None = None):
    """Extract the page list of one document."""
    doc_id = _doc_id_or_400(url)
    return await _run_extraction(doc_id)


@app.post("/extract", response_model=ExtractionResult)
async def extract_post(request: ExtractRequest):
    """
    Same as GET /extract. With save=true a successful, non-empty result is
    also forwarded to the remote cache; a failed save does not change the response.
    """
    doc_id = _doc_id_or_400(request.url)
    result = await _run_extraction(doc_id)
    if request.save:
        await _save_if_useful(result)
    return result


@app.post("/batch", response_model=list[BatchItem])
async def batch(request: BatchRequest):
    """Extract several documents one after another and return a summary per URL."""
    summaries = []
    for url in request.urls:
        doc_id = extract_doc_id(url)
        if doc_id is None:
            summaries.append(BatchItem(url=url, success=False, error="invalid_url"))
            continue
        try:
            result = await asyncio.to_thread(extract_pages, doc_id)
        except Exception as e:
            logger.exception("Batch extraction crashed for %s", url)
            summaries.append(BatchItem(url=url, success=False, error=str(e)))
            continue
        await _save_if_useful(result)
        summaries.append(
            BatchItem(url=url, success=result.success, pages=len(result.pages), error=result.error)
        )
    return summaries


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", PORT))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=False)
