"""
TAXIMP - Centralised configuration.

All tunables live here.  Every other module imports from config
instead of reading os.environ directly.
"""

from __future__ import annotations
import os
from pathlib import Path


# ── Paths ──────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent

# ── Database ───────────────────────────────────────────────────────────
DB_URL = os.environ.get("TAXIMP_DB", f"sqlite:///{BASE_DIR / 'taximp.sqlite'}")
# SQLite: ms a writer waits on a locked database before the save retry kicks in
DB_BUSY_TIMEOUT_MS = int(os.environ.get("TAXIMP_DB_BUSY_TIMEOUT_MS", "5000"))

# ── Server ─────────────────────────────────────────────────────────────
HOST   = os.environ.get("TAXIMP_HOST", "0.0.0.0")
PORT   = int(os.environ.get("TAXIMP_PORT", "5000"))
DEBUG  = os.environ.get("TAXIMP_DEBUG", "0") == "1"
SECRET = os.environ.get("TAXIMP_SECRET", "taximp-dev-key-change-in-prod")

# ── Logging ────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("TAXIMP_LOG_LEVEL", "INFO").upper()

# ── Upload validation ──────────────────────────────────────────────────
# Space separated, e.g. "csv xml"
ALLOWED_EXTENSIONS = os.environ.get("TAXIMP_ALLOWED_EXTENSIONS", "csv xml")
MAX_UPLOAD_MB      = int(os.environ.get("TAXIMP_MAX_UPLOAD_MB", "16"))

CSV_MIME_TYPES = frozenset({"text/plain", "application/csv", "text/csv"})
XML_MIME_TYPES = frozenset({"text/xml", "application/xml"})

# ── Import throttling / retry ──────────────────────────────────────────
PROGRESS_EVERY = int(os.environ.get("TAXIMP_PROGRESS_EVERY", "50"))
PARENT_DELAY   = float(os.environ.get("TAXIMP_PARENT_DELAY", "0.01"))
BATCH_DELAY    = float(os.environ.get("TAXIMP_BATCH_DELAY", "0.05"))
RETRY_DELAY    = float(os.environ.get("TAXIMP_RETRY_DELAY", "0.1"))


def allowed_extensions() -> set[str]:
    """Parsed ALLOWED_EXTENSIONS, lowercased and without dots."""
    return {ext.strip(".").lower() for ext in ALLOWED_EXTENSIONS.split() if ext.strip(".")}
