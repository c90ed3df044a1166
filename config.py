"""
Central configuration — reads from .env file.

Every setting is a module attribute so that code reading config.X always
sees the current value (tests monkeypatch these directly).
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Google Gemini ─────────────────────────────────────────────────────────────
# Get a key at https://aistudio.google.com/apikey
# Not required at import time; the provider manager raises a clear error
# on the first model call when it is missing.
GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY") or None

# Model used to break the photo down into clothing items (needs vision +
# structured JSON output).
VISION_MODEL: str = os.getenv("VISION_MODEL", "gemini-2.5-flash")

# Model used for per-item retailer lookup (needs Google Search grounding).
SEARCH_MODEL: str = os.getenv("SEARCH_MODEL", "gemini-2.5-flash")

# ── Product discovery ─────────────────────────────────────────────────────────
# Upper bound (seconds) for a single item's retailer lookup. A slow lookup
# only delays its own item, which falls back to generic search links.
DISCOVERY_TIMEOUT: float = float(os.getenv("DISCOVERY_TIMEOUT", "45"))

# How many retailer links to keep per clothing item.
MAX_PRODUCTS_PER_ITEM: int = int(os.getenv("MAX_PRODUCTS_PER_ITEM", "6"))

# ── HTTP API ──────────────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8080"))

# Largest upload accepted by POST /analyze (default 20 MiB, Gemini's inline limit).
MAX_IMAGE_BYTES: int = int(os.getenv("MAX_IMAGE_BYTES", str(20 * 1024 * 1024)))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Most client sessions kept in memory; the least recently used one (and its
# stored photo) is dropped past this.
MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "256"))
