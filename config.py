"""
Configuration and constants for the Scribd Page Extractor.
Loads environment variables and defines all shared settings.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

# --- Service identity ---
SERVICE_NAME = "scribd-extractor"
VERSION = "2.1.0"
PORT = int(os.getenv("PORT", 3000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- Target site ---
SITE_BASE_URL = os.getenv("SITE_BASE_URL", "https://www.scribd.com").rstrip("/")
SITE_NAME = os.getenv("SITE_NAME", "Scribd")
IMAGE_HOST = os.getenv("IMAGE_HOST", "html.scribdassets.com")

# --- Remote cache (results are forwarded here when save is requested) ---
CACHE_BASE_URL = os.getenv("CACHE_BASE_URL", "https://scribd-viewer.akatwdao.workers.dev").rstrip("/")
CACHE_TIMEOUT = float(os.getenv("CACHE_TIMEOUT", 15))

# --- Navigation ---
NAV_TIMEOUT_MS = int(os.getenv("NAV_TIMEOUT_MS", 30000))
SETTLE_DELAY_MS = int(os.getenv("SETTLE_DELAY_MS", 3000))
AFFORDANCE_CLICK_TIMEOUT_MS = 1500

# --- Harvest loop ---
SCROLL_STEP_PX = int(os.getenv("SCROLL_STEP_PX", 600))
SCROLL_PAUSE_MS = int(os.getenv("SCROLL_PAUSE_MS", 400))
MAX_SCROLLS = int(os.getenv("MAX_SCROLLS", 100))
STAGNATION_LIMIT = int(os.getenv("STAGNATION_LIMIT", 8))
HARVEST_MAX_SECONDS = float(os.getenv("HARVEST_MAX_SECONDS", 120))

# --- Browser (mimics a desktop Chrome to avoid the bot wall) ---
HEADLESS = os.getenv("HEADLESS", "true").strip().lower() not in {"0", "false", "no", "off"}
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
)
VIEWPORT = {"width": 1400, "height": 1000}
BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
]


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure root + uvicorn loggers once."""
    if getattr(setup_logging, "_configured", False):
        return
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        level=lvl,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(lvl)
    setup_logging._configured = True
